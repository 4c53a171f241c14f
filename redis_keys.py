REDIS_MESSAGES_KEY = "order:messages:{order_id}" # order id - list of persisted message records

# **Example record pushed to `order:messages:{order_id}`**
# - `order_id` = raw order identifier
# - `sender_id` = user id of the sender
# - `type` = message type, e.g. `chat-message`
# - `json` = JSON text `{"message": ..., "sender_id": ...}`
# - `timestamp` = epoch milliseconds
# - `platform` = originating platform, e.g. `web`
