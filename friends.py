"""
=============================================================================
FRIENDS.PY — Friendship state machine
=============================================================================
Each user keeps two id lists:
  friends         → accepted friends (symmetric: if A lists B, B lists A)
  friend_requests → INBOUND pending requests (B.friend_requests has A when
                    A asked B)

State of the ordered pair (A, B):

     none ──send(A→B)──→ pending_outgoing ──accept(B)──→ friends
      ↑                        │                            │
      └───────reject(B)────────┘                            │
      └────────────────────remove(A or B)───────────────────┘

There is no "pending both ways": if B already asked A, send(A→B) is refused
and A has to accept instead.

Accept and remove write BOTH users in the same transaction, so a
half-friended pair can only come from older data; re-running accept or
remove converges it.
"""

import enum
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

import store
from embedded import CollectionKind, items_of, parse_timestamp
from errors import ConflictError, InvalidStateError
from models import ExerciseCard, User

logger = logging.getLogger("shukuma.friends")

MAX_FRIENDS = 500
MAX_FRIEND_REQUESTS = 100
FEED_WORKOUTS_PER_FRIEND = 10
SEARCH_RESULTS_LIMIT = 20


class FriendshipState(str, enum.Enum):
    none = "none"
    pending_outgoing = "pending_outgoing"
    pending_incoming = "pending_incoming"
    friends = "friends"


def friendship_state(user: User, other: User) -> FriendshipState:
    """State of the pair as seen by `user`"""
    if other.id in (user.friends or []) or user.id in (other.friends or []):
        return FriendshipState.friends
    if user.id in (other.friend_requests or []):
        return FriendshipState.pending_outgoing
    if other.id in (user.friend_requests or []):
        return FriendshipState.pending_incoming
    return FriendshipState.none


def _with(ids: list, value: int) -> list:
    ids = list(ids or [])
    return ids if value in ids else ids + [value]


def _without(ids: list, value: int) -> list:
    return [i for i in (ids or []) if i != value]


def public_profile(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


# =============================================================================
# ===================== TRANSITIONS ===========================================
# =============================================================================

def send_request(db: Session, from_id: int, to_id: int) -> FriendshipState:
    return store.atomic(db, _send_request, from_id, to_id)


def _send_request(db: Session, from_id: int, to_id: int) -> FriendshipState:
    if from_id == to_id:
        raise ConflictError("You cannot send a friend request to yourself")

    sender = store.load_user(db, from_id)
    recipient = store.load_user(db, to_id)

    state = friendship_state(sender, recipient)
    if state == FriendshipState.friends:
        raise ConflictError("You are already friends with this user")
    if state == FriendshipState.pending_outgoing:
        raise ConflictError("Friend request already sent")
    if state == FriendshipState.pending_incoming:
        raise ConflictError("This user already sent you a friend request, accept it instead")

    if len(recipient.friend_requests or []) >= MAX_FRIEND_REQUESTS:
        raise ConflictError("This user has too many pending friend requests")
    if len(sender.friends or []) >= MAX_FRIENDS:
        raise ConflictError(f"You cannot have more than {MAX_FRIENDS} friends")

    store.write_list(recipient, "friend_requests", _with(recipient.friend_requests, from_id))
    logger.info(f"📨 Friend request {from_id} → {to_id}")
    return FriendshipState.pending_outgoing


def accept_request(db: Session, user_id: int, requester_id: int) -> FriendshipState:
    return store.atomic(db, _accept_request, user_id, requester_id)


def _accept_request(db: Session, user_id: int, requester_id: int) -> FriendshipState:
    user = store.load_user(db, user_id)
    requester = store.load_user(db, requester_id)

    pending = requester_id in (user.friend_requests or [])
    half_friended = (requester_id in (user.friends or [])) != (user_id in (requester.friends or []))
    if not pending and not half_friended:
        raise InvalidStateError("No friend request from this user")

    for owner, other in ((user, requester), (requester, user)):
        if other.id not in (owner.friends or []) and len(owner.friends or []) >= MAX_FRIENDS:
            raise ConflictError(f"Friends limit reached ({MAX_FRIENDS})")

    store.write_list(user, "friends", _with(user.friends, requester_id))
    store.write_list(requester, "friends", _with(requester.friends, user_id))
    store.write_list(user, "friend_requests", _without(user.friend_requests, requester_id))
    if user_id in (requester.friend_requests or []):
        store.write_list(requester, "friend_requests", _without(requester.friend_requests, user_id))

    logger.info(f"🤝 Users {user_id} and {requester_id} are now friends")
    return FriendshipState.friends


def reject_request(db: Session, user_id: int, requester_id: int) -> FriendshipState:
    return store.atomic(db, _reject_request, user_id, requester_id)


def _reject_request(db: Session, user_id: int, requester_id: int) -> FriendshipState:
    user = store.load_user(db, user_id)
    if requester_id not in (user.friend_requests or []):
        raise InvalidStateError("No friend request from this user")

    store.write_list(user, "friend_requests", _without(user.friend_requests, requester_id))
    logger.info(f"🚫 User {user_id} rejected the request from {requester_id}")
    return FriendshipState.none


def remove_friend(db: Session, user_id: int, other_id: int) -> FriendshipState:
    return store.atomic(db, _remove_friend, user_id, other_id)


def _remove_friend(db: Session, user_id: int, other_id: int) -> FriendshipState:
    user = store.load_user(db, user_id)
    other = store.load_user(db, other_id)

    if other_id not in (user.friends or []) and user_id not in (other.friends or []):
        raise InvalidStateError("This user is not in your friends list")

    store.write_list(user, "friends", _without(user.friends, other_id))
    store.write_list(other, "friends", _without(other.friends, user_id))
    logger.info(f"💔 Users {user_id} and {other_id} are no longer friends")
    return FriendshipState.none


def purge_user_references(db: Session, user_id: int) -> int:
    """
    Removes user_id from every other user's friends / friend_requests.
    Does not commit: runs inside the account deletion transaction.
    Returns how many users were touched.
    """
    touched = 0
    for other in db.query(User).filter(User.id != user_id).all():
        changed = False
        if user_id in (other.friends or []):
            store.write_list(other, "friends", _without(other.friends, user_id))
            changed = True
        if user_id in (other.friend_requests or []):
            store.write_list(other, "friend_requests", _without(other.friend_requests, user_id))
            changed = True
        touched += changed
    return touched


# =============================================================================
# ===================== READS =================================================
# =============================================================================

def get_state(db: Session, user_id: int, other_id: int) -> FriendshipState:
    return friendship_state(store.load_user(db, user_id), store.load_user(db, other_id))


def list_friends(db: Session, user_id: int) -> list[dict]:
    user = store.load_user(db, user_id)
    return [public_profile(friend) for friend in store.load_users(db, user.friends or [])]


def list_requests(db: Session, user_id: int) -> list[dict]:
    user = store.load_user(db, user_id)
    return [public_profile(requester) for requester in store.load_users(db, user.friend_requests or [])]


def activity_feed(db: Session, user_id: int, limit: int = 20) -> list[dict]:
    """Latest workouts of every friend, newest first"""
    user = store.load_user(db, user_id)
    friends = store.load_users(db, user.friends or [])

    entries = []
    for friend in friends:
        workouts = sorted(
            items_of(friend, CollectionKind.workout_history),
            key=lambda w: parse_timestamp(w["date"]),
        )[-FEED_WORKOUTS_PER_FRIEND:]
        for workout in workouts:
            entries.append((friend, workout))

    exercise_ids = {workout["exerciseId"] for _, workout in entries}
    exercises = {}
    if exercise_ids:
        exercises = {
            card.id: card
            for card in db.query(ExerciseCard).filter(ExerciseCard.id.in_(exercise_ids)).all()
        }

    entries.sort(key=lambda entry: parse_timestamp(entry[1]["date"]), reverse=True)

    feed = []
    for friend, workout in entries[:limit]:
        card = exercises.get(workout["exerciseId"])
        feed.append({
            "user": {"id": friend.id, "name": friend.name, "username": friend.username},
            "workout": {
                "id": workout["id"],
                "exercise": {
                    "id": card.id,
                    "name": card.name,
                    "category": card.category,
                    "difficulty": card.difficulty,
                } if card else None,
                "date": workout["date"],
                "completed": workout.get("completed", True),
                "duration": workout.get("duration"),
            },
        })
    return feed


def search_users(db: Session, user_id: int, query: str) -> list[dict]:
    """Name or username contains the text (case-insensitive). Caller excluded."""
    pattern = store.contains_pattern(query)
    users = (
        db.query(User)
        .filter(User.id != user_id)
        .filter(or_(User.name.ilike(pattern, escape=store.LIKE_ESCAPE),
                    User.username.ilike(pattern, escape=store.LIKE_ESCAPE)))
        .order_by(User.name)
        .limit(SEARCH_RESULTS_LIMIT)
        .all()
    )
    viewer = store.load_user(db, user_id)
    return [
        {**public_profile(found), "friendshipState": friendship_state(viewer, found).value}
        for found in users
    ]
