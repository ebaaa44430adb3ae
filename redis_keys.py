REDIS_ROOM_META_KEY = "room:meta:{slug}" # room id - room hash
REDIS_ROOM_MESSAGES_KEY = "room:messages:{slug}" # room id - list of message json
REDIS_ROOMS_INDEX_KEY = "rooms:index" # sorted set of room ids, scored by creation sequence
REDIS_ROOMS_SEQ_KEY = "rooms:seq" # counter backing the index scores
REDIS_ROOM_NAMES_KEY = "rooms:names" # hash room name -> room id
REDIS_MESSAGES_KEY = "messages:all" # list of message json across rooms
REDIS_USER_KEY = "user:{user_id}" # user hash
REDIS_USERNAMES_KEY = "users:names" # hash username -> user id

# **Example `room:meta:{id}` hash fields**
# - `id` = `{roomId}`
# - `name` = room name, unique
# - `created_at` = ISO timestamp
