"""
concordances-rw: reads, writes and deletes concordance records and notifies
downstream consumers of every successful change.
"""
