# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Adapter error types."""

from typing import Optional


class Sentiment402Error(Exception):
    """Base error for the sentiment402 adapter."""
    pass


class ApiError(Sentiment402Error):
    """The remote API failed at transport level or returned an unexpected status.

    Raised for any status other than 200 and 402, for network failures and
    timeouts (``status`` is ``None`` then), and for 200 responses whose body
    is not JSON. Never raised for payment outcomes; those are returned as data.

    Example:
        try:
            result = await fetcher.fetch_json(url)
        except ApiError as e:
            logger.error(f"Sentiment API unavailable: {e.status}")
    """

    def __init__(self, status: Optional[int], body: str = ""):
        """Initialize API error.

        Args:
            status: HTTP status code, or None for transport failures
            body: Response body text (or transport error message)
        """
        self.status = status
        self.body = body
        label = status if status is not None else "transport"
        super().__init__(f"API error ({label}): {body}")


class DecodeError(Sentiment402Error):
    """A payment header could not be decoded."""
    pass


class PaymentError(Sentiment402Error):
    """Payment payload construction failed."""
    pass


class ConfigError(Sentiment402Error):
    """Adapter configuration is invalid."""
    pass
