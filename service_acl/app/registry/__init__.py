"""
Model registry package: static ACL declarations loaded from code or YAML.
"""
