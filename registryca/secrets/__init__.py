'''
Classes for the secrets of the registry certificate authority

The common names of the certificates:
root CA cert: registry-addon
registry TLS cert: as requested by the caller, typically the name of the
registry Service

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''
