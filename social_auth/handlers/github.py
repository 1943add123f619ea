"""
GitHub handler.

GitHub connections exist for repository access; there is nothing to post
to, so publishing always reports a failure.
"""

import logging

from ..errors import ValidationError
from ..storage.base import CredentialStore
from ..types import GitHubConnection, Platform, PostOptions, PostResult
from .base import BaseHandler

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = (
    "GitHub posting is not implemented. GitHub is primarily used for "
    "repository management, not social posting."
)


class GitHubHandler(BaseHandler):
    platform = Platform.GITHUB
    display_name = "GitHub"

    async def send_post(
        self,
        user_id: str,
        connection: GitHubConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.token:
            raise ValidationError("Missing GitHub token", platform=self.platform.value)

        logger.info(f"Skipping GitHub publish for user {user_id}: not supported")
        return PostResult.failure(self.platform.value, UNSUPPORTED_MESSAGE)
