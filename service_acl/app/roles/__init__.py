"""
Role membership resolution for role-based ACL entries.
"""
