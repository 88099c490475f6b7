"""Record types and collection names for the back-office datastore.

Each module maps one family of collections (claims, contracts and members,
catalogue, payments) to dataclasses, and converts between the stored
camelCase documents and those dataclasses.
"""
