"""
AgroSanga: soil report uploads, yield prediction and crop recommendation
for farmers, backed by a hosted auth/storage/database service.
"""

__version__ = "0.1.0"
