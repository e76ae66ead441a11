'''
Access to the management cluster and to the workload clusters

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''
