import logging
import time

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from pesantren.client.api import ApiError
from pesantren.services.message_status import StatusUpdateError, apply_status

logger = logging.getLogger(__name__)


def status_backoff(retry_state):
    """0.5s per attempt after a 404, 0.3s per attempt after anything else."""
    exc = retry_state.outcome.exception()
    factor = 0.5 if getattr(exc, 'status_code', None) == 404 else 0.3
    return factor * retry_state.attempt_number


class MessageStatusUpdater:
    """Marks chat messages delivered or read through the API.

    A message the API keeps answering 404 for may still exist in the store
    under a legacy id. For ids matching the fallback patterns the updater
    writes the status directly, under the same transition rules.
    """

    def __init__(self, api, user_id, max_attempts=3, pause=0.1,
                 fallback_ids=(), fallback_prefix='-OeM', fallback_min_length=15,
                 sleep=time.sleep, direct_write=apply_status):
        self.api = api
        self.user_id = user_id
        self.max_attempts = max_attempts
        self.pause = pause
        self.fallback_ids = set(fallback_ids)
        self.fallback_prefix = fallback_prefix
        self.fallback_min_length = fallback_min_length
        self._sleep = sleep
        self._direct_write = direct_write

    @classmethod
    def from_config(cls, api, user_id, config, **kwargs):
        return cls(
            api, user_id,
            max_attempts=config.get('STATUS_UPDATE_MAX_ATTEMPTS', 3),
            pause=config.get('STATUS_UPDATE_PAUSE_SECONDS', 0.1),
            fallback_ids=config.get('STATUS_FALLBACK_MESSAGE_IDS', ()),
            fallback_prefix=config.get('STATUS_FALLBACK_PREFIX', '-OeM'),
            fallback_min_length=config.get('STATUS_FALLBACK_MIN_LENGTH', 15),
            **kwargs,
        )

    def is_fallback_id(self, message_id):
        if message_id in self.fallback_ids:
            return True
        return (bool(self.fallback_prefix)
                and message_id.startswith(self.fallback_prefix)
                and len(message_id) > self.fallback_min_length)

    def _send(self, chat_id, message_id, status, codes):
        try:
            return self.api.update_message_status(chat_id, message_id, status)
        except ApiError as e:
            codes.append(e.status_code)
            raise

    def update(self, chat_id, message_id, status):
        """Update one message. Returns True on success."""
        codes = []
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=status_backoff,
            retry=retry_if_exception_type(ApiError),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            retrying(self._send, chat_id, message_id, status, codes)
            return True
        except ApiError as e:
            logger.warning('Status %s for message %s failed after %d attempt(s): %s',
                           status, message_id, len(codes), e.message)

        if codes and all(code == 404 for code in codes) and self.is_fallback_id(message_id):
            return self._fallback(chat_id, message_id, status)
        return False

    def _fallback(self, chat_id, message_id, status):
        logger.warning('Writing status %s for message %s directly', status, message_id)
        try:
            self._direct_write(chat_id, message_id, self.user_id, status)
        except StatusUpdateError as e:
            logger.warning('Direct status write for %s refused: %s', message_id, e.message)
            return False
        return True

    def batch_update(self, chat_id, message_ids, status):
        """Update several messages one after another.

        Returns {"success": [...], "failed": [...]}.
        """
        result = {'success': [], 'failed': []}
        for index, message_id in enumerate(message_ids):
            if index and self.pause:
                self._sleep(self.pause)
            if self.update(chat_id, message_id, status):
                result['success'].append(message_id)
            else:
                result['failed'].append(message_id)
        if result['failed']:
            logger.info('Batch %s for chat %s: %d ok, %d failed', status, chat_id,
                        len(result['success']), len(result['failed']))
        return result
