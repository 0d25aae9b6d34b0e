"""XVault Meta information.
   XVault maps named, signer-scoped vaults onto buckets of a key-value store.
"""
__title__ = 'xvault'
__description__ = (
   'Multi-tenant key-value vault gated by signed identity claims, '
   'backed by NATS JetStream buckets.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2025 XVault Developers'
__author__ = 'XVault Developers'
__license__ = 'Apache-2.0'
