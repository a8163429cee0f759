#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Existence check for a node before any metric is queried."""

from ..commons.context import RequestContext
from ..commons.exceptions import MalformedResult
from .dispatcher import QueryDispatcher


async def check_valid_node(
    dispatcher: QueryDispatcher, context: RequestContext, index_pattern: str, id_field: str, node_id: str
) -> bool:
    """Return whether at least one document in `index_pattern` has `id_field` equal to `node_id`.

    Raises:
        BackendUnavailable: If the search fails.
    """
    body = {
        "size": 0,
        "terminate_after": 1,
        "query": {"match": {id_field: node_id}},
    }
    response = await dispatcher.dispatch(context, index_pattern, body)

    try:
        total = response["hits"]["total"]
    except (KeyError, TypeError):
        raise MalformedResult(node_id, "existence check reply has no hit count") from None

    # Older clusters report the total as a bare number
    if isinstance(total, dict):
        total = total.get("value", 0)
    return total > 0
