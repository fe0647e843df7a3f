"""
Synchronous event dispatcher plus the blog's domain events and listeners.

Listeners run in registration order on the calling thread; their return
values are collected and returned by :meth:`EventDispatcher.dispatch`.
"""

import logging

from . import logger as log_channels

logger = logging.getLogger(__name__)


class Event:
    """Base class for event objects.

    An event's :attr:`name` defaults to its class name in lower case, so
    ``PostCreated`` dispatches as ``"postcreated"`` unless overridden.
    """

    name = None

    def get_name(self):
        """Return the name this event is dispatched under."""
        return self.name or type(self).__name__.lower()


class EventDispatcher:
    """Observer list keyed by case-insensitive event name."""

    def __init__(self):
        self._listeners = {}

    @staticmethod
    def _normalize(event):
        if not isinstance(event, str) or not event.strip():
            raise ValueError("Event name must be a non-empty string or an event object.")
        return event.strip().lower()

    def listen(self, event, listener, once=False):
        """Register ``listener`` for ``event``; ``once`` removes it after one call."""
        name = self._normalize(event)
        self._listeners.setdefault(name, []).append({"callback": listener, "once": once})

    def once(self, event, listener):
        """Register ``listener`` to run on the next ``event`` only."""
        self.listen(event, listener, once=True)

    def dispatch(self, event, *payload):
        """Call every listener for ``event`` and return their results in order.

        ``event`` is either a name or an :class:`Event` instance; instances
        are dispatched under :meth:`Event.get_name` and passed to listeners
        as the first argument.
        """
        if isinstance(event, Event):
            name = self._normalize(event.get_name())
            payload = (event,) + payload
        else:
            name = self._normalize(event)

        entries = self._listeners.get(name)
        if not entries:
            return []

        results = []
        # Iterate over a snapshot so listeners may register/forget safely
        for entry in list(entries):
            results.append(entry["callback"](*payload))
            if entry["once"] and entry in entries:
                entries.remove(entry)

        if not entries:
            self._listeners.pop(name, None)
        return results

    emit = dispatch

    def get_listeners(self, event):
        """Return the callbacks registered for ``event`` in call order.

        :param event: Event name.
        :type event: str
        :rtype: list
        """
        return [entry["callback"] for entry in self._listeners.get(self._normalize(event), [])]

    def has_listeners(self, event):
        """Return ``True`` if anything listens for ``event``."""
        return bool(self._listeners.get(self._normalize(event)))

    def forget(self, event, listener):
        """Remove ``listener`` from ``event``."""
        name = self._normalize(event)
        entries = [e for e in self._listeners.get(name, []) if e["callback"] is not listener]
        if entries:
            self._listeners[name] = entries
        else:
            self._listeners.pop(name, None)

    def forget_all(self, event):
        """Remove every listener for ``event``."""
        self._listeners.pop(self._normalize(event), None)

    def flush(self):
        """Remove all listeners for all events."""
        self._listeners.clear()


# -------------------------------
# DOMAIN EVENTS
# -------------------------------
class PostCreated(Event):
    name = "post.created"

    def __init__(self, post):
        self.post = post


class PostUpdated(Event):
    name = "post.updated"

    def __init__(self, post):
        self.post = post


class PostDeleted(Event):
    name = "post.deleted"

    def __init__(self, post):
        self.post = post


class CommentAdded(Event):
    name = "comment.added"

    def __init__(self, comment, post):
        self.comment = comment
        self.post = post


class UserRegistered(Event):
    name = "user.registered"

    def __init__(self, user):
        self.user = user


# -------------------------------
# LISTENERS
# -------------------------------
#: Cache keys that hold lists of posts and must be dropped on any post change.
POST_LIST_KEYS = ("blog.index", "blog.recent", "blog.categories", "posts.published")


def post_cache_keys(post):
    """Cache keys holding data for a single post."""
    return (f"posts.{post.id}", f"blog.post.{post.slug}")


def clear_post_cache(cache):
    """Build a listener that drops cached post lists (and the post itself on update/delete)."""

    def listener(event):
        for key in POST_LIST_KEYS:
            cache.forget(key)
        if isinstance(event, (PostUpdated, PostDeleted)):
            for key in post_cache_keys(event.post):
                cache.forget(key)
        logger.debug(
            "Post cache cleared",
            extra={"context": {"event": type(event).__name__, "post_id": getattr(event.post, "id", None)}},
        )

    return listener


def send_post_created_notification(event):
    """Record a notification for a newly created post on the ``mail`` channel."""
    post = event.post
    if not post.is_published():
        return
    log_channels.channel("mail").info(
        "New post published",
        extra={"context": {"post_id": post.id, "title": post.title, "slug": post.slug}},
    )


def log_comment_activity(event):
    """Log a new comment with its post and author."""
    logger.info(
        "Comment added",
        extra={
            "context": {
                "comment_id": event.comment.id,
                "post_id": event.post.id,
                "author": event.comment.author_name,
            }
        },
    )


def log_user_registration(event):
    """Record a sign-up on the ``security`` channel."""
    log_channels.channel("security").info(
        "User registered",
        extra={"context": {"user_id": event.user.id, "email": event.user.email}},
    )


def register_listeners(dispatcher, cache):
    """Wire the blog's listeners onto ``dispatcher``."""
    clear_cache = clear_post_cache(cache)

    dispatcher.listen(PostCreated.name, send_post_created_notification)
    dispatcher.listen(PostCreated.name, clear_cache)
    dispatcher.listen(PostUpdated.name, clear_cache)
    dispatcher.listen(PostDeleted.name, clear_cache)
    dispatcher.listen(CommentAdded.name, log_comment_activity)
    dispatcher.listen(UserRegistered.name, log_user_registration)
    return dispatcher
