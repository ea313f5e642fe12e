"""
licenseiq_mapping -- versioned ERP field mappings.

Mapping versions form lineages (root plus descendants linked through
parent_mapping_id).  Each lineage has at most one approved version; revert
forks a new draft from historical content instead of mutating history.
"""
