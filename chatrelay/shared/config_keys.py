class ConfigKeys:
    GATEWAY_URL = "gateway.url"
    GATEWAY_ACCESS_TOKEN = "gateway.access_token"
    OPENAI_API_KEY = "openai.api_key"
    OPENAI_MODEL = "openai.model"
    OPENAI_API_BASE = "openai.api_base"
    OPENAI_MAX_TOKENS = "openai.max_tokens"
    OPENAI_TEMPERATURE = "openai.temperature"
    BOT_SYSTEM_PROMPT = "bot.system_prompt"
    BOT_REPLY_PREFIX = "bot.reply_prefix"
    BOT_PRIVATE_TRIGGER_KEYWORD = "bot.private_trigger_keyword"
    BOT_PRIVATE_LIMIT = "bot.private_limit"
    BOT_GROUP_LIMIT = "bot.group_limit"
    BOT_WELCOME_TO_GROUP = "bot.welcome_to_group"
    BOT_HELP_TEXT = "bot.help_text"
    BOT_PRIVATE_LIMIT_REPLY = "bot.private_limit_reply"
    BOT_GROUP_LIMIT_REPLY = "bot.group_limit_reply"
    SESSION_MAX_ENTRIES = "session.max_entries"
    LOG_PATH = "log.path"
    LOG_LEVEL = "log.level"
    LOG_DUMP_EVENTS = "log.dump_events"
