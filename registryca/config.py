'''
config

provides global variables

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

# Enable various debugging options
debug: bool = False

# Used by logging to add extra data to each log record
# After importing config, you can also set, for example,
# config.extra_log_data['cluster'] = cluster.name
extra_log_data: dict[str, str] = {}

# Test cases set the value to True. Code may evaluate whether
# it is running as part of a test case to accept function parameters
test_case: bool = False
