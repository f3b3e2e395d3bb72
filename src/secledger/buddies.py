"""Buddy pairing handshake: request -> accept / decline.

Requests live on the target's record, at most one per requester. Accepting
pairs both users in the same store transaction. When an accept replaces an
existing pairing and ``repair_displaced_buddies`` is on, the displaced
partner's back-reference is cleared so ``buddy`` stays symmetric.
"""

from __future__ import annotations

import logging

from secledger import events
from secledger.config import settings
from secledger.errors import InvalidArgument, NotFound, require
from secledger.models import BuddyAction, BuddyRequest, UserSecurity
from secledger.store import Ledger, SecurityStore

logger = logging.getLogger(__name__)


def request_buddy(store: SecurityStore, from_user: str, to_user: str) -> str:
    require(**{"from": from_user, "to": to_user})
    if from_user == to_user:
        raise InvalidArgument("You cannot add yourself as a buddy")

    with store.transaction() as ledger:
        ledger.get_or_create(from_user)
        target = ledger.get_or_create(to_user)
        duplicate = target.find_request(from_user) is not None
        if not duplicate:
            target.buddy_requests.append(BuddyRequest(from_user=from_user))

    if not duplicate:
        events.emit(
            "buddy", "info", "requested",
            f"{from_user} requested {to_user} as buddy",
            username=to_user,
            context={"from": from_user},
        )
    return "Buddy request sent"


def _unlink_displaced(ledger: Ledger, user: str, new_partner: str) -> None:
    """Clear the back-reference of ``user``'s previous partner, if any."""
    previous = ledger.get_or_create(user).buddy
    if not previous or previous == new_partner:
        return
    old = ledger.get(previous)
    if old is not None and old.buddy == user:
        old.buddy = None
        logger.info("Cleared stale pairing %s -> %s", previous, user)
        events.emit(
            "buddy", "info", "unpaired",
            f"{previous} unpaired from {user} (replaced by {new_partner})",
            username=previous,
            context={"former_buddy": user},
        )


def respond_to_buddy(store: SecurityStore, to_user: str, from_user: str, action: str) -> UserSecurity:
    """Consume the pending request from ``from_user``; pair on ``accept``."""
    require(to=to_user, **{"from": from_user}, action=action)

    with store.transaction() as ledger:
        target = ledger.get_or_create(to_user)
        request = target.find_request(from_user)
        if request is None:
            raise NotFound("Buddy request not found")
        target.buddy_requests.remove(request)

        accepted = action == BuddyAction.ACCEPT
        if accepted:
            requester = ledger.get_or_create(from_user)
            if settings.repair_displaced_buddies:
                _unlink_displaced(ledger, to_user, from_user)
                _unlink_displaced(ledger, from_user, to_user)
            target.buddy = from_user
            requester.buddy = to_user
            # The reverse request is moot once the pair exists
            reverse = requester.find_request(to_user)
            if reverse is not None:
                requester.buddy_requests.remove(reverse)

    if accepted:
        events.emit("buddy", "info", "paired", f"{to_user} and {from_user} are now buddies",
                    username=to_user, context={"buddy": from_user})
    else:
        events.emit("buddy", "info", "declined", f"{to_user} declined {from_user}",
                    username=to_user, context={"from": from_user, "action": action})
    return target
