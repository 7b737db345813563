"""
Offline tools over the persisted CSV: revalidation and fake-transaction reports.
"""
