"""
Results module: stored quiz results, status rules and the audited write path.
"""
