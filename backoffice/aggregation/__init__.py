"""
Record aggregation over independently keyed collections.

- fan_out: rebuilds Claim and Contract views from their satellites
- relationships: resolves role-tagged member edges for a contract
- writer: decomposes composite records into one atomic batch
- identifiers: human-readable ids backed by store sequences
"""
