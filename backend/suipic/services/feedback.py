"""
Read-side feedback views: average ratings, pick/reject counts, comment
threads and the per-album summary. Nothing here writes.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
import uuid

from fastapi import Depends

from suipic.models import Album, FlagType, Image, User
from suipic.services.entity_store import EntityStore, get_entity_store

_ONE_DECIMAL = Decimal("0.1")


def average_rating(values: Iterable[int]) -> Optional[float]:
    """Mean rounded half-up to one decimal, or None when there are no ratings."""
    values = list(values)
    if not values:
        return None
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FlagCounts:
    pick_count: int = 0
    reject_count: int = 0


def count_flags(flag_types: Iterable[FlagType]) -> FlagCounts:
    picks = rejects = 0
    for flag_type in flag_types:
        if flag_type is FlagType.PICK:
            picks += 1
        elif flag_type is FlagType.REJECT:
            rejects += 1
        elif flag_type is FlagType.NONE:
            continue
        else:
            raise ValueError(f"Unhandled flag type {flag_type!r}")
    return FlagCounts(pick_count=picks, reject_count=rejects)


@dataclass
class CommentEntry:
    comment: Any
    author: Any = None
    replies: List["CommentEntry"] = field(default_factory=list)


def _thread_root(comment, by_id: Mapping[uuid.UUID, Any]):
    seen = set()
    current = comment
    while current.parent_id is not None:
        if current.id in seen:
            return None
        seen.add(current.id)
        current = by_id.get(current.parent_id)
        if current is None:
            return None
    return current


def thread_comments(comments: Sequence[Any], authors: Mapping[uuid.UUID, Any] = None) -> List[CommentEntry]:
    """
    Group an image's comments into threads.

    Top-level comments come newest first. Every reply, however deeply it
    nests, is attached to its top-level comment in chronological order.
    """
    authors = authors or {}
    by_id = {comment.id: comment for comment in comments}
    replies: Dict[uuid.UUID, List[Any]] = defaultdict(list)
    top_level = []

    for comment in comments:
        if comment.parent_id is None:
            top_level.append(comment)
            continue
        root = _thread_root(comment, by_id)
        if root is not None:
            replies[root.id].append(comment)

    top_level.sort(key=lambda c: c.created_at, reverse=True)
    return [
        CommentEntry(
            comment=comment,
            author=authors.get(comment.user_id),
            replies=[
                CommentEntry(comment=reply, author=authors.get(reply.user_id))
                for reply in sorted(replies[comment.id], key=lambda c: c.created_at)
            ],
        )
        for comment in top_level
    ]


@dataclass
class ImageFeedback:
    average_rating: Optional[float]
    rating_count: int
    pick_count: int
    reject_count: int


@dataclass
class RaterEntry:
    user_id: uuid.UUID
    user_name: str
    rating: int


@dataclass
class FlaggerEntry:
    user_id: uuid.UUID
    user_name: str
    flag: FlagType


@dataclass
class ImageSummary:
    image_id: uuid.UUID
    original_filename: str
    photographer_name: str
    average_rating: Optional[float]
    rating_count: int
    pick_count: int
    reject_count: int
    ratings: List[RaterEntry] = field(default_factory=list)
    flags: List[FlaggerEntry] = field(default_factory=list)


@dataclass
class AlbumSummary:
    album_id: uuid.UUID
    album_name: str
    images: List[ImageSummary] = field(default_factory=list)


def _name_of(users: Mapping[uuid.UUID, User], user_id: uuid.UUID) -> str:
    user = users.get(user_id)
    return user.display_name if user is not None else ""


def summarize_image(image: Image, ratings: Sequence, flags: Sequence, users: Mapping[uuid.UUID, User]) -> ImageSummary:
    counts = count_flags(flag.flag_type for flag in flags)
    return ImageSummary(
        image_id=image.id,
        original_filename=image.original_filename,
        photographer_name=_name_of(users, image.photographer_id),
        average_rating=average_rating(rating.rating for rating in ratings),
        rating_count=len(ratings),
        pick_count=counts.pick_count,
        reject_count=counts.reject_count,
        ratings=[
            RaterEntry(user_id=rating.user_id, user_name=_name_of(users, rating.user_id), rating=rating.rating)
            for rating in ratings
        ],
        flags=[
            FlaggerEntry(user_id=flag.user_id, user_name=_name_of(users, flag.user_id), flag=flag.flag_type)
            for flag in flags
        ],
    )


class FeedbackAggregator:
    """Builds feedback projections from narrow EntityStore queries."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def image_feedback(self, image_id: uuid.UUID) -> ImageFeedback:
        ratings = await self.store.list_ratings([image_id])
        flags = await self.store.list_flags([image_id])
        counts = count_flags(flag.flag_type for flag in flags)
        return ImageFeedback(
            average_rating=average_rating(rating.rating for rating in ratings),
            rating_count=len(ratings),
            pick_count=counts.pick_count,
            reject_count=counts.reject_count,
        )

    async def comment_threads(self, image_id: uuid.UUID) -> List[CommentEntry]:
        comments = await self.store.list_comments(image_id)
        authors = await self.store.get_users([comment.user_id for comment in comments])
        return thread_comments(comments, authors)

    async def album_summary(self, album: Album) -> AlbumSummary:
        images = await self.store.list_images(album.id)
        image_ids = [image.id for image in images]
        ratings = await self.store.list_ratings(image_ids)
        flags = await self.store.list_flags(image_ids)

        ratings_by_image = defaultdict(list)
        for rating in ratings:
            ratings_by_image[rating.image_id].append(rating)
        flags_by_image = defaultdict(list)
        for flag in flags:
            flags_by_image[flag.image_id].append(flag)

        user_ids = {image.photographer_id for image in images}
        user_ids.update(rating.user_id for rating in ratings)
        user_ids.update(flag.user_id for flag in flags)
        users = await self.store.get_users(list(user_ids))

        return AlbumSummary(
            album_id=album.id,
            album_name=album.name,
            images=[
                summarize_image(image, ratings_by_image[image.id], flags_by_image[image.id], users)
                for image in images
            ],
        )


def get_feedback_aggregator(store: EntityStore = Depends(get_entity_store)) -> FeedbackAggregator:
    return FeedbackAggregator(store)
