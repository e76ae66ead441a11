'''
Persistence of secrets and objects for the registry certificate authority

The management cluster keeps the root CA and the per-cluster CA secrets,
workload clusters receive the TLS secrets for their registry

:maintainer : Steven Hessing (steven@byoda.org)
:copyright  : Copyright 2020, 2021, 2025
:license    : GPLv3
'''

# flake8: noqa=E401

from .secretstore import SecretStore, ObjectStore
