from translator.views.auth_handlers import login as login
from translator.views.auth_handlers import logout as logout
from translator.views.auth_handlers import me as me
from translator.views.handlers import cache_status as cache_status
from translator.views.handlers import clear_cache as clear_cache
from translator.views.handlers import health as health
from translator.views.translate_handlers import translate_stream as translate_stream
