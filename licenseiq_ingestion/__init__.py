"""
licenseiq_ingestion -- staged import of ERP rows into canonical records.

Flow: pre-import filter -> mapping rules -> staged ImportedRecords
(StagingService) -> canonical records (CommitService), with discard and
retry of failed rows.  Every job, record and canonical row is scoped to the
company / business unit / location it was imported into.
"""
