"""
BranchGuard - branch protection and push authorization service.
"""

__version__ = "1.0.0"
__author__ = "BranchGuard Team"
__description__ = "Branch protection rules and push authorization for hosted git repositories"
