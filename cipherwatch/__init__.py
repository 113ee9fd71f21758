"""
CipherWatch: deviation detection and risk scoring engine.

Architecture:
  raw event
    → engine.baseline      (per-subject statistical baseline)
    → engine.deviation     (per-axis deviations + cross-axis flags)
    → engine.patterns      (historical losing-trade fingerprints)
    → engine.scoring       (fraud product score / trading pressure score)
    → engine.classifier    (threshold bands + allowed actions)
    → services             (investigation / insight assembly, audit)
    → storage              (key-value persistence collaborator)

Entry point for callers: ``cipherwatch.service.CipherWatchEngine``.
"""

__version__ = "1.0.0"
