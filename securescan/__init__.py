"""
SecureScan - aggregate security findings from external analyzers and
propose AI-assisted fixes as pull requests.
"""

__version__ = "1.0.0"
