'''
Classes for data modeling of the registry certificate authority

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''
