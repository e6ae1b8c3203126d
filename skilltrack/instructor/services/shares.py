"""
Share Lifecycle Manager
Creates and revokes shares of self-authored programs. Revoking detaches the
assignments made through the share; it never deletes them or touches their status.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from instructor.models import Assignment, Program, Share
from roster.models import UserProfile
from roster.relationships import RelationshipLookup
from skilltrack.exceptions import AuthorizationError, Conflict, ValidationError
from skilltrack.lookups import get_or_not_found

logger = logging.getLogger(__name__)

AUDIENCES = ('teacher', 'peer')
AUDIENCE_ROLES = {
    'teacher': ('instructor', 'admin'),
    'peer': ('student',),
}


def _check_audience(audience):
    if audience not in AUDIENCES:
        raise ValidationError(f"Unknown share audience '{audience}'", allowed=list(AUDIENCES))


def _revoke(share, actor):
    """
    Soft-delete one share and detach its downstream assignments.
    Returns (detached, skipped); skipped counts assignments that were already detached.
    """
    now = timezone.now()
    share.active = False
    share.revoked_at = now
    share.revoked_by = actor
    share.save(update_fields=['active', 'revoked_at', 'revoked_by'])

    note = f"Source share revoked by {actor.full_name or actor.email} on {now:%Y-%m-%d %H:%M} UTC"
    downstream = Assignment.objects.filter(source_share=share)
    skipped = downstream.filter(detached=True).count()
    detached = downstream.filter(detached=False).update(detached=True, detached_note=note)
    return detached, skipped


class ShareLifecycleManager:
    """Service for program shares and their revocation cascade"""

    @staticmethod
    def create_share(program_id, sharer_id, recipient_id, audience, note=None):
        """
        Share a self-authored program with a teacher or a peer.
        Re-sharing while an active share exists returns it with created=False.
        """
        _check_audience(audience)
        if str(sharer_id) == str(recipient_id):
            raise ValidationError('You cannot share a program with yourself')

        program = get_or_not_found(
            Program.objects.filter(active=True, author_id=sharer_id),
            'Program',
            id=program_id,
        )
        sharer = program.author
        recipient = get_or_not_found(UserProfile, 'Recipient', id=recipient_id)

        if recipient.role not in AUDIENCE_ROLES[audience]:
            raise ValidationError(
                f"A {audience} share needs a recipient with role {' or '.join(AUDIENCE_ROLES[audience])}",
                recipient_role=recipient.role
            )
        if not RelationshipLookup.can_share(sharer, recipient, audience):
            logger.warning(f"User {sharer.id} is not eligible to share with {recipient.id} ({audience})")
            raise AuthorizationError('No eligible relationship with this recipient', recipient_id=str(recipient.id))

        existing = Share.objects.filter(program=program, recipient=recipient, active=True).first()
        if existing is not None:
            logger.debug(f"Program {program.id} already shared with {recipient.id}")
            return {'share': existing, 'created': False}

        try:
            with transaction.atomic():
                share = Share.objects.create(
                    program=program,
                    sharer=sharer,
                    recipient=recipient,
                    audience=audience,
                    note=note,
                )
        except IntegrityError:
            # Lost a race against an identical share
            existing = Share.objects.filter(program=program, recipient=recipient, active=True).first()
            if existing is None:
                raise
            return {'share': existing, 'created': False}

        logger.info(f"Program {program.id} shared by {sharer.id} with {recipient.id} ({audience})")
        return {'share': share, 'created': True}

    @staticmethod
    def revoke_share(share_id, actor_id):
        """Revoke one active share; returns the number of detached assignments"""
        with transaction.atomic():
            share = get_or_not_found(
                Share.objects.select_for_update().filter(active=True),
                'Active share',
                id=share_id,
            )
            if str(share.sharer_id) != str(actor_id):
                logger.warning(f"User {actor_id} attempted to revoke share {share.id} of {share.sharer_id}")
                raise AuthorizationError('Only the sharer can revoke this share', share_id=str(share.id))
            actor = get_or_not_found(UserProfile, 'User', id=actor_id)
            detached, skipped = _revoke(share, actor)

        logger.info(f"Revoked share {share.id}; detached {detached} assignments, {skipped} already detached")
        return detached

    @staticmethod
    def revoke_all_shares(program_id, sharer_id, audience=None):
        """
        Revoke every active share of a program by this sharer, optionally per
        audience. Assignments that were already detached are counted as skipped.
        """
        if audience is not None:
            _check_audience(audience)

        with transaction.atomic():
            shares = Share.objects.select_for_update().filter(program_id=program_id, sharer_id=sharer_id, active=True)
            if audience is not None:
                shares = shares.filter(audience=audience)
            shares = list(shares)

            revoked = detached = skipped = 0
            if shares:
                actor = get_or_not_found(UserProfile, 'User', id=sharer_id)
                for share in shares:
                    share_detached, share_skipped = _revoke(share, actor)
                    detached += share_detached
                    skipped += share_skipped
                    revoked += 1

        if revoked:
            logger.info(
                f"Revoked {revoked} shares of program {program_id}; detached {detached} assignments, {skipped} already detached"
            )
        return {'revoked': revoked, 'detached': detached, 'skipped': skipped}

    @staticmethod
    def list_shares(program_id, sharer_id, audience=None):
        shares = (
            Share.objects.filter(program_id=program_id, sharer_id=sharer_id, active=True)
            .select_related('recipient')
            .order_by('-shared_at')
        )
        if audience is not None:
            _check_audience(audience)
            shares = shares.filter(audience=audience)
        return list(shares)

    @staticmethod
    def list_received_shares(recipient_id):
        return list(
            Share.objects.filter(recipient_id=recipient_id, active=True, program__active=True)
            .select_related('program', 'sharer')
            .order_by('-shared_at')
        )

    @staticmethod
    def delete_authored_program(program_id, owner_id):
        """
        Soft-delete an authored program. Blocked while an active share or a
        live (non-detached) assignment made through a share still depends on it.
        """
        with transaction.atomic():
            program = get_or_not_found(
                Program.objects.select_for_update().filter(author_id=owner_id),
                'Program',
                id=program_id,
            )
            if not program.active:
                logger.debug(f"Program {program.id} already deleted")
                return program

            active_shares = program.shares.filter(active=True).count()
            live_share_assignments = program.assignments.filter(
                Q(provenance='share') | Q(source_share__isnull=False),
                detached=False,
            ).count()
            if active_shares or live_share_assignments:
                logger.warning(
                    f"Refused to delete program {program.id}: {active_shares} active shares, "
                    f"{live_share_assignments} share assignments"
                )
                raise Conflict(
                    'Program is still shared; revoke its shares first',
                    active_shares=active_shares,
                    share_assignments=live_share_assignments,
                )

            program.active = False
            program.save(update_fields=['active', 'updated_at'])

        logger.info(f"Deleted program {program.id}")
        return program
