# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .exceptions import NoRelaysConfigured, PublishFailed
from .transport import Filter, PublishResults, RawEvent, RelayTransport, SubscriptionHandle, normalize_relays, publish_to_relays

__all__ = 'Filter', 'PublishResults', 'RawEvent', 'RelayTransport', 'SubscriptionHandle', 'normalize_relays', 'publish_to_relays', 'NoRelaysConfigured', 'PublishFailed'  # noqa: RUF022
