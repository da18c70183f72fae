"""End-to-end tests for the naive node-redis rewrites."""

import pytest

from glidemigrate.core.migration import MigrationEngine
from glidemigrate.core.migration.models import StrategyKind


# =========================================================================
# Sample node-redis source fixtures
# =========================================================================

URL_FACTORY = """\
import { createClient } from 'redis';

const client = createClient({ url: 'redis://localhost:6380' });
await client.connect();
await client.hSet('user:1', 'name', 'Ann');
await client.setEx('token', 60, 'abc');
const name = await client.hGet('user:1', 'name');
await client.quit();
"""

NAMESPACE_FACTORY = """\
const redis = require('redis');
const client = redis.createClient({
  socket: { host: 'cache', port: 6390, tls: true },
  password: 'pw',
  database: 2,
});
"""

CHAINED_FACTORY = """\
import { createClient } from 'redis';
const client = await createClient().on('error', (err) => console.log(err)).connect();
"""

SET_OPTIONS = """\
import { createClient } from 'redis';
const client = createClient();
await client.set('k', 'v', { EX: 10, NX: true });
"""

RECONNECT = """\
import { createClient } from 'redis';
const client = createClient({ socket: { reconnectStrategy: (retries) => retries * 50 } });
"""


CONNECT_CATCH = """\
import { createClient } from 'redis';
const client = createClient();
client.connect().catch(console.error);
await client.get('k');
"""

HASH_DELETE = """\
import { createClient } from 'redis';
const client = createClient();
await client.hDel('user:1', 'name', 'age');
await client.hDel('user:1', 'email');
"""

LUA_EVAL = """\
import { createClient } from 'redis';
const client = createClient();
const n = await client.eval('return KEYS[1]', { keys: ['k'], arguments: ['1'] });
"""

SCRIPT_CACHE = """\
import { createClient } from 'redis';
const client = createClient();
const sha = await client.scriptLoad('return 1');
const value = await client.evalSha(sha, { keys: ['k'] });
"""

SUBSCRIBER = """\
import { createClient } from 'redis';
const client = createClient();
const subscriber = client.duplicate();
await subscriber.subscribe('news', (message) => console.log(message));
await subscriber.pSubscribe('news.*', (message, channel) => console.log(channel, message));
await subscriber.unsubscribe('news');
"""

def _migrate(code: str):
    return MigrationEngine().migrate({"code": code, "from": "node-redis"})


class TestNodeRedisConstruction:
    def test_url_factory(self):
        result = _migrate(URL_FACTORY)
        code = result.transformed_code
        assert result.strategy == StrategyKind.NAIVE
        assert code.startswith("import { GlideClient } from '@valkey/valkey-glide';")
        assert "const client = await GlideClient.createClient({ addresses: [{ host: 'localhost', port: 6380 }] });" in code
        assert "createClient({ url" not in code

    def test_connect_dropped(self):
        result = _migrate(URL_FACTORY)
        assert "client.connect()" not in result.transformed_code
        assert any("connect() calls were removed" in note for note in result.notes)

    def test_namespace_factory_with_socket(self):
        code = _migrate(NAMESPACE_FACTORY).transformed_code
        assert "const { GlideClient } = require('@valkey/valkey-glide');" in code
        assert "redis.createClient" not in code
        assert "addresses: [{ host: 'cache', port: 6390 }]" in code
        assert "useTLS: true" in code
        assert "credentials: { password: 'pw' }" in code
        assert "databaseId: 2" in code

    def test_chained_lifecycle_calls_removed(self):
        result = _migrate(CHAINED_FACTORY)
        code = result.transformed_code
        assert "const client = await GlideClient.createClient(" in code
        assert ".connect()" not in code
        assert ".on(" not in code
        assert any("connection events" in w for w in result.warnings)

    def test_reconnect_strategy_becomes_retry_config(self):
        result = _migrate(RECONNECT)
        code = result.transformed_code
        assert "connectionRetryStrategy: { numberOfRetries: 5, factor: 2, baseDelay: 100 }" in code
        assert "reconnectStrategy" not in code
        assert any("reconnect strategies" in w for w in result.warnings)


class TestNodeRedisCommands:
    def test_method_casing_and_hash_fields(self):
        code = _migrate(URL_FACTORY).transformed_code
        assert "client.hset('user:1', { name: 'Ann' })" in code
        assert "client.hget('user:1', 'name')" in code

    def test_set_ex(self):
        code = _migrate(URL_FACTORY).transformed_code
        assert "client.set('token', 'abc', { expiry: { type: 'EX', count: 60 } })" in code

    def test_quit_becomes_close(self):
        code = _migrate(URL_FACTORY).transformed_code
        assert "await client.close();" in code

    def test_set_options_object(self):
        code = _migrate(SET_OPTIONS).transformed_code
        assert "client.set('k', 'v', { expiry: { type: 'EX', count: 10 }, conditionalSet: 'onlyIfDoesNotExist' })" in code

    def test_rerun_is_stable(self):
        first = _migrate(URL_FACTORY).transformed_code
        assert _migrate(first).transformed_code == first

    def test_hdel_fields_become_array(self):
        code = _migrate(HASH_DELETE).transformed_code
        assert "client.hdel('user:1', ['name', 'age'])" in code
        assert "client.hdel('user:1', ['email'])" in code
        assert "hDel" not in code


class TestNodeRedisLifecycle:
    def test_connect_catch_dropped(self):
        result = _migrate(CONNECT_CATCH)
        code = result.transformed_code
        assert ".connect()" not in code
        assert ".catch(" not in code
        assert "await client.get('k');" in code
        assert any("connect() calls were removed" in note for note in result.notes)


# =========================================================================
# Tests: Scripting
# =========================================================================

class TestNodeRedisScripting:
    def test_eval_with_keys_and_arguments(self):
        code = _migrate(LUA_EVAL).transformed_code
        assert "const luaScript1 = new Script('return KEYS[1]');\n" in code
        assert "const n = await client.invokeScript(luaScript1, { keys: ['k'], args: ['1'] });" in code
        assert "client.eval(" not in code
        assert code.splitlines()[0] == "import { GlideClient, Script } from '@valkey/valkey-glide';"

    def test_script_cache_calls_flagged(self):
        result = _migrate(SCRIPT_CACHE)
        code = result.transformed_code
        assert (
            "// TODO(glide): GLIDE caches scripts itself; replace scriptLoad() with a Script object\n"
            "const sha = await client.scriptLoad('return 1');"
        ) in code
        assert "// TODO(glide): replace evalSha() with client.invokeScript(" in code
        assert any(w.startswith("scriptLoad() needs a manual rewrite") for w in result.warnings)
        assert any(w.startswith("evalSha() needs a manual rewrite") for w in result.warnings)


# =========================================================================
# Tests: Pub/Sub
# =========================================================================

class TestNodeRedisSubscriptions:
    @pytest.fixture
    def result(self):
        return _migrate(SUBSCRIBER)

    def test_subscribe_calls_commented_out(self, result):
        code = result.transformed_code
        assert "// await subscriber.subscribe('news', (message) => console.log(message));" in code
        assert "// await subscriber.unsubscribe('news');" in code
        assert "\nawait subscriber." not in code

    def test_todo_blocks_name_channel_modes(self, result):
        code = result.transformed_code
        assert "// TODO(glide): subscribe at client creation instead:" in code
        assert "//       [GlideClientConfiguration.PubSubChannelModes.Exact]: new Set(['news'])," in code
        assert "//       [GlideClientConfiguration.PubSubChannelModes.Pattern]: new Set(['news.*'])," in code
        assert "// TODO(glide): GLIDE cannot change subscriptions at runtime;" in code

    def test_each_call_warned(self, result):
        for method in ("subscribe", "pSubscribe", "unsubscribe"):
            assert any(w.startswith(f"{method}() was commented out") for w in result.warnings)
