"""In-memory stand-in for the azure-cosmos async client.

Covers the surface the store layer uses: databases, containers, stored
procedures, point reads, upserts and paged feeds. Queries are evaluated with a
small interpreter for the SQL the query builder emits, using the store's
three-valued logic (comparisons involving a missing property are undefined and
never match).

Every proxy method yields to the event loop before touching state, so
concurrent callers interleave the way they would against a real account.
"""

import asyncio
import copy
import json
import re
import uuid

from azure.cosmos import exceptions

DEFAULT_PAGE_SIZE = 100


def not_found(what):
    return exceptions.CosmosResourceNotFoundError(status_code=404, message=f"{what} does not exist")


def conflict(what):
    return exceptions.CosmosResourceExistsError(status_code=409, message=f"{what} already exists")


def http_error(status_code, message="Request failed"):
    return exceptions.CosmosHttpResponseError(status_code=status_code, message=message)


class FakeContainerState:
    def __init__(self, name, partition_key_path, throughput):
        self.name = name
        self.partition_key_path = partition_key_path
        self.throughput = throughput
        self.items = {}
        self.procedures = {}

    def partition_value(self, document):
        value = document
        for segment in self.partition_key_path.strip("/").split("/"):
            if not isinstance(value, dict) or segment not in value:
                return None
            value = value[segment]
        return value


class FakeCosmosClient:
    """Records every request; ``fail_on`` maps an operation name to an error to raise."""

    def __init__(self, default_page_size=DEFAULT_PAGE_SIZE, procedure_budget=None):
        self.databases = {}
        self.default_page_size = default_page_size
        self.procedure_budget = procedure_budget
        self.fail_on = {}
        self.requests = []
        self.created = []
        self.procedure_calls = []
        self.closed = False

    async def _request(self, operation, target):
        await asyncio.sleep(0)
        self.requests.append((operation, target))
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    def get_database_client(self, database):
        return FakeDatabaseProxy(self, database)

    async def create_database(self, id, **kwargs):
        await self._request("create_database", id)
        if id in self.databases:
            raise conflict(f"Database {id}")
        self.databases[id] = {}
        self.created.append(("database", id))
        return self.get_database_client(id)

    async def delete_database(self, database, **kwargs):
        await self._request("delete_database", database)
        if self.databases.pop(database, None) is None:
            raise not_found(f"Database {database}")

    async def close(self):
        self.closed = True

    def container(self, database, name):
        """Direct access to container state for assertions."""
        return self.databases[database][name]


class FakeDatabaseProxy:
    def __init__(self, client, name):
        self._client = client
        self.id = name

    def _containers(self):
        containers = self._client.databases.get(self.id)
        if containers is None:
            raise not_found(f"Database {self.id}")
        return containers

    async def read(self, **kwargs):
        await self._client._request("read_database", self.id)
        self._containers()
        return {"id": self.id}

    async def create_container(self, id, partition_key, offer_throughput=None, **kwargs):
        await self._client._request("create_container", id)
        containers = self._containers()
        if id in containers:
            raise conflict(f"Container {id}")
        containers[id] = FakeContainerState(id, partition_key.path, offer_throughput)
        self._client.created.append(("container", id))
        return self.get_container_client(id)

    def get_container_client(self, container):
        return FakeContainerProxy(self._client, self.id, container)


class FakeContainerProxy:
    def __init__(self, client, database, name):
        self._client = client
        self._database = database
        self.id = name

    def _state(self):
        containers = self._client.databases.get(self._database)
        if containers is None:
            raise not_found(f"Database {self._database}")
        state = containers.get(self.id)
        if state is None:
            raise not_found(f"Container {self.id}")
        return state

    @property
    def scripts(self):
        return FakeScriptsProxy(self._client, self)

    async def read(self, **kwargs):
        await self._client._request("read_container", self.id)
        state = self._state()
        return {"id": self.id, "partitionKey": {"paths": [state.partition_key_path]}}

    def _store(self, state, body):
        document = copy.deepcopy(body)
        document.update(
            {
                "_rid": uuid.uuid4().hex[:12],
                "_self": f"dbs/{self._database}/colls/{self.id}/docs/{body['id']}",
                "_etag": f'"{uuid.uuid4()}"',
                "_attachments": "attachments/",
                "_ts": len(self._client.requests),
            }
        )
        state.items[(json.dumps(state.partition_value(body)), body["id"])] = document
        return copy.deepcopy(document)

    async def upsert_item(self, body, **kwargs):
        await self._client._request("upsert_item", body.get("id"))
        return self._store(self._state(), body)

    async def read_item(self, item, partition_key, **kwargs):
        await self._client._request("read_item", item)
        document = self._state().items.get((json.dumps(partition_key), item))
        if document is None:
            raise not_found(f"Document {item}")
        return copy.deepcopy(document)

    def read_all_items(self, max_item_count=None, **kwargs):
        return FakePager(self, "read_all_items", lambda document: True, max_item_count)

    def query_items(self, query, parameters=None, max_item_count=None, **kwargs):
        predicate = compile_sql(query, parameters or [])
        self._client.requests.append(("compile_query", query))
        return FakePager(self, "query_items", predicate, max_item_count)


class FakePager:
    """Mimics AsyncItemPaged: iterate items directly or page by page."""

    def __init__(self, container, operation, predicate, page_size):
        self._container = container
        self._operation = operation
        self._predicate = predicate
        self._page_size = page_size or container._client.default_page_size
        self.pages_fetched = 0

    def by_page(self, continuation_token=None):
        return self._pages(int(continuation_token or 0))

    async def _pages(self, start):
        offset = start
        while True:
            await self._container._client._request(self._operation, self._container.id)
            documents = [
                copy.deepcopy(d)
                for d in self._container._state().items.values()
                if self._predicate(d)
            ]
            documents.sort(key=lambda d: d["id"])
            page = documents[offset:offset + self._page_size]
            self.pages_fetched += 1
            yield _iterate(page)
            offset += self._page_size
            if offset >= len(documents):
                return

    async def __aiter__(self):
        async for page in self.by_page():
            async for document in page:
                yield document


async def _iterate(items):
    for item in items:
        yield item


class FakeScriptsProxy:
    def __init__(self, client, container):
        self._client = client
        self._container = container

    async def get_stored_procedure(self, sproc, **kwargs):
        await self._client._request("read_procedure", sproc)
        body = self._container._state().procedures.get(sproc)
        if body is None:
            raise not_found(f"Stored procedure {sproc}")
        return dict(body)

    async def create_stored_procedure(self, body, **kwargs):
        await self._client._request("create_procedure", body["id"])
        state = self._container._state()
        if body["id"] in state.procedures:
            raise conflict(f"Stored procedure {body['id']}")
        state.procedures[body["id"]] = dict(body)
        self._client.created.append(("procedure", body["id"]))
        return dict(body)

    async def execute_stored_procedure(self, sproc, *, partition_key=None, parameters=None, **kwargs):
        """Runs the bulk import procedure: upserts in order until the budget runs out."""
        await self._client._request("execute_procedure", sproc)
        state = self._container._state()
        if sproc not in state.procedures:
            raise not_found(f"Stored procedure {sproc}")

        documents = parameters[0] if parameters else None
        if not isinstance(documents, list):
            raise http_error(400, "The array is undefined or null.")

        self._client.procedure_calls.append(
            {"partition_key": partition_key, "ids": [d["id"] for d in documents]}
        )

        budget = self._client.procedure_budget
        count = 0
        for document in documents:
            if budget is not None and count >= budget:
                break
            if state.partition_value(document) != partition_key:
                raise http_error(400, "Requests originating from scripts cannot reference partition keys other than the one for which client request was submitted.")
            self._container._store(state, document)
            count += 1
        return count


# --- SQL subset ------------------------------------------------------------

_UNDEFINED = object()

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<param>@\w+)
      | (?P<op><=|>=|!=|=|<|>)
      | (?P<punct>[()\[\],*])
      | (?P<word>[A-Za-z_]+)
    )""",
    re.VERBOSE,
)

_FUNCTIONS = {"IS_DEFINED", "IS_NULL", "ARRAY_CONTAINS", "CONTAINS", "STARTSWITH"}


def _tokenize(text):
    tokens = []
    position = 0
    text = text.rstrip()
    while position < len(text):
        match = _TOKEN.match(text, position)
        if match is None:
            raise ValueError(f"Unexpected character at {position}: {text[position:]!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


def _kind(value):
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _compare(operator, left, right):
    if left is _UNDEFINED or right is _UNDEFINED:
        return _UNDEFINED
    if _kind(left) != _kind(right):
        return _UNDEFINED
    if operator == "=":
        return left == right
    if operator == "!=":
        return left != right
    if _kind(left) not in ("number", "string"):
        return _UNDEFINED
    return {
        "<": left < right,
        "<=": left <= right,
        ">": left > right,
        ">=": left >= right,
    }[operator]


def _and(left, right):
    if left is False or right is False:
        return False
    if left is True and right is True:
        return True
    return _UNDEFINED


def _or(left, right):
    if left is True or right is True:
        return True
    if left is False and right is False:
        return False
    return _UNDEFINED


def _not(value):
    if value is True:
        return False
    if value is False:
        return True
    return _UNDEFINED


class _Parser:
    def __init__(self, tokens, parameters):
        self.tokens = tokens
        self.index = 0
        self.parameters = {p["name"]: p["value"] for p in parameters}

    def peek(self, offset=0):
        position = self.index + offset
        return self.tokens[position] if position < len(self.tokens) else (None, None)

    def take(self, value=None):
        token = self.peek()
        if token[0] is None or (value is not None and token[1] != value):
            raise ValueError(f"Expected {value!r}, got {token[1]!r}")
        self.index += 1
        return token

    def parse_query(self):
        for word in ("SELECT", "*", "FROM", "c", "WHERE"):
            self.take(word)
        condition = self.parse_or()
        if self.index != len(self.tokens):
            raise ValueError(f"Trailing tokens: {self.tokens[self.index:]}")
        return condition

    def parse_or(self):
        left = self.parse_and()
        while self.peek()[1] == "OR":
            self.take("OR")
            right = self.parse_and()
            left = (lambda l, r: lambda d: _or(l(d), r(d)))(left, right)
        return left

    def parse_and(self):
        left = self.parse_unary()
        while self.peek()[1] == "AND":
            self.take("AND")
            right = self.parse_unary()
            left = (lambda l, r: lambda d: _and(l(d), r(d)))(left, right)
        return left

    def parse_unary(self):
        if self.peek()[1] == "NOT":
            self.take("NOT")
            operand = self.parse_unary()
            return lambda d: _not(operand(d))
        if self.peek()[1] == "(":
            self.take("(")
            inner = self.parse_or()
            self.take(")")
            return inner
        if self.peek()[1] in _FUNCTIONS:
            return self.parse_function()
        return self.parse_comparison()

    def parse_function(self):
        name = self.take()[1]
        self.take("(")
        arguments = [self.parse_operand()]
        while self.peek()[1] == ",":
            self.take(",")
            arguments.append(self.parse_operand())
        self.take(")")

        def call(document):
            values = [argument(document) for argument in arguments]
            if name == "IS_DEFINED":
                return values[0] is not _UNDEFINED
            if name == "IS_NULL":
                return values[0] is None
            if name == "ARRAY_CONTAINS":
                array, value = values
                if not isinstance(array, list) or value is _UNDEFINED:
                    return False
                return any(_compare("=", item, value) is True for item in array)
            text, affix = values
            if not isinstance(text, str) or not isinstance(affix, str):
                return _UNDEFINED
            return affix in text if name == "CONTAINS" else text.startswith(affix)

        return call

    def parse_comparison(self):
        left = self.parse_operand()
        kind, operator = self.take()
        if kind != "op":
            raise ValueError(f"Expected comparison operator, got {operator!r}")
        right = self.parse_operand()
        return lambda d: _compare(operator, left(d), right(d))

    def parse_operand(self):
        kind, value = self.peek()
        if kind == "param":
            self.take()
            if value not in self.parameters:
                raise ValueError(f"Unbound parameter {value}")
            bound = self.parameters[value]
            return lambda d: bound
        if value == "c":
            self.take()
            segments = []
            while self.peek()[1] == "[":
                self.take("[")
                segments.append(json.loads(self.take()[1]))
                self.take("]")
            return lambda d: _lookup(d, segments)
        raise ValueError(f"Unexpected token {value!r}")


def _lookup(document, segments):
    value = document
    for segment in segments:
        if not isinstance(value, dict) or segment not in value:
            return _UNDEFINED
        value = value[segment]
    return value


def compile_sql(query, parameters):
    """Return a predicate selecting the documents ``query`` matches."""
    condition = _Parser(_tokenize(query), parameters).parse_query()
    return lambda document: condition(document) is True
