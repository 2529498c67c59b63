"""Rich rendering of run reports, host status and audit history.

Modules
-------
renderer
    ``ReportRenderer`` turns ``RunReport``, ``DeployState`` and audit
    manifests into Rich renderables for terminal display.
"""
