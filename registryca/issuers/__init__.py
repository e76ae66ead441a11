'''
Issuers of the TLS certs for the registries of workload clusters

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''
