"""
groveconf Core
==============

Option descriptors, value cells, the group tree and the Registry, plus the
library's own settings, logging and metrics.

Import public names from ``groveconf`` rather than from here; this package
stays import-light so its modules can depend on each other without cycles.
"""
