"""
Status-transition signal for reward collaborators.

Sent with keyword arguments:
    progression      the updated Progression row
    previous_status  status before the change
    new_status       status after the change
    source           'attempt' or 'manual'
"""
from django.dispatch import Signal

step_status_changed = Signal()
