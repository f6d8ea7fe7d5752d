"""Task status reconciliation and listing.

Status changes go through `StatusTransitionService`: the resolver applies
the mutation (canonical endpoint, one legacy fallback on 404/405) and the
verifier re-reads the task with a fixed backoff until the remote state
converges or the schedule runs out.
"""
