"""
Per-identity credential facts and the remediation verdicts built on them.

The evaluator lives in `credfacts.core.userinfo.evaluator`.
"""
