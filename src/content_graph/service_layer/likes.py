"""Like toggle: the dual write of ``User.likes`` membership and ``Article.likes``."""

from __future__ import annotations

import logging

from content_graph.domain.model import LikeOutcome, Message, is_valid_id
from content_graph.errors import DbResult, ErrorCode, TransactionAbort
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork


logger = logging.getLogger(__name__)


@instrumented("toggle_like")
async def toggle_like(coordinator: TransactionCoordinator, user_id: str, article_id: str) -> DbResult[LikeOutcome]:
    """Flip the user's like on an article.

    Membership in ``user.likes`` decides the direction, and the counter moves
    only on an actual state change. The unit of work holds the write lock
    from the first read, so two identical toggles racing each other see each
    other's result instead of both incrementing. A new like notifies the
    article's author, self-likes included.
    """
    for kind, value in (("user", user_id), ("article", article_id)):
        if not is_valid_id(value):
            return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"The provided {kind} ID '{value}' has an invalid format.")

    async def work(uow: AbstractUnitOfWork) -> LikeOutcome:
        article = await uow.articles.get(article_id)
        if article is None:
            raise TransactionAbort(f"Article with ID {article_id} not found.", ErrorCode.NOT_FOUND)
        user = await uow.users.get(user_id)
        if user is None:
            raise TransactionAbort(f"User with ID {user_id} not found.", ErrorCode.NOT_FOUND)

        if user.has_liked(article_id):
            await uow.users.remove_like(user_id, article_id)
            new_count = await uow.articles.adjust_likes(article_id, -1)
            action = "unliked"
        else:
            await uow.users.add_like(user_id, article_id)
            new_count = await uow.articles.adjust_likes(article_id, 1)
            action = "liked"
            await uow.messages.add(Message.like(article, from_user_id=user.id, from_user_name=user.name))

        if new_count is None:
            raise TransactionAbort(f"Article with ID {article_id} vanished during like toggle")
        return LikeOutcome(action=action, new_count=new_count)

    result = await coordinator.run("toggle_like", work, surface_codes={ErrorCode.NOT_FOUND})
    if result.ok and result.data is not None:
        logger.info("User %s %s article %s (likes=%d)", user_id, result.data.action, article_id, result.data.new_count)
    return result
