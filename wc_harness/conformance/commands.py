"""
Administrative commands routed to the config servers.

Commands in the strict partition accept only a majority write concern;
commands in the upconverted partition get whatever write concern they carry
replaced with majority by the router.
"""

from __future__ import annotations

from wc_harness.conformance.catalog import CaseContext, CommandCatalog, Partition

BASIC_USER_ROLES = ["dbOwner"]

# Must no longer authenticate once a case's working database is reset
STALE_CREDENTIALS: list[tuple[str, str]] = [("username", "password")]


def _empty_database(ctx: CaseContext) -> None:
    # Dropping a database holding replicated collections needs a majority of
    # nodes, which some scenarios deliberately take away.
    ctx.collection.insert_one({"type": "oak"})
    ctx.db.pine_needles.insert_one({"type": "pine"})
    ctx.db.pine_needles.drop()
    ctx.collection.drop()


def _setup_sharded_database(ctx: CaseContext) -> None:
    ctx.cluster.shard_collection_with_chunks(ctx.db_name, ctx.collection_name)
    ctx.collection.insert_one({"type": "oak", "x": 11})
    ctx.db.pine_needles.insert_one({"type": "pine"})
    ctx.db.pine_needles.drop()
    ctx.collection.drop()


def _confirm_database_dropped(ctx: CaseContext) -> None:
    names = ctx.cluster.database_names()
    ctx.expect(
        ctx.db_name not in names,
        f"database {ctx.db_name} still listed after dropDatabase",
        databases=names,
    )


def _confirm_user_created(ctx: CaseContext) -> None:
    ctx.expect(ctx.authenticates("username", "password"), "auth failed")


def _setup_existing_user(ctx: CaseContext) -> None:
    ctx.db.command("createUser", "username", pwd="password", roles=BASIC_USER_ROLES)


def _confirm_user_updated(ctx: CaseContext) -> None:
    ctx.expect(
        not ctx.authenticates("username", "password"),
        "auth with the old password should have failed",
    )
    ctx.expect(ctx.authenticates("username", "password2"), "auth failed")


def _setup_temp_user(ctx: CaseContext) -> None:
    ctx.db.command("createUser", "tempUser", pwd="password", roles=BASIC_USER_ROLES)
    ctx.expect(ctx.authenticates("tempUser", "password"), "auth failed")


def _confirm_user_dropped(ctx: CaseContext) -> None:
    ctx.expect(
        not ctx.authenticates("tempUser", "password"),
        "auth should have failed",
    )


def _setup_sharded_collection(ctx: CaseContext) -> None:
    ctx.cluster.shard_collection_with_chunks(ctx.db_name, ctx.collection_name)


def _confirm_collection_empty(ctx: CaseContext) -> None:
    count = ctx.collection.count_documents({})
    ctx.expect(count == 0, f"collection still holds {count} documents", count=count)


def default_catalog(collection_name: str = "leaves") -> CommandCatalog:
    """Build the catalogue of commands that must honour majority write concern."""
    catalog = CommandCatalog()

    catalog.add(
        "dropDatabase-unsharded",
        {"dropDatabase": 1},
        setup=_empty_database,
        confirm=_confirm_database_dropped,
        requires_majority=False,
        runs_on_shards=True,
        fails_on_shards=True,
        description="Drop an unsharded database",
    )
    catalog.add(
        "dropDatabase-sharded",
        {"dropDatabase": 1},
        setup=_setup_sharded_database,
        confirm=_confirm_database_dropped,
        requires_majority=False,
        runs_on_shards=True,
        fails_on_shards=True,
        description="Drop a database with a sharded collection",
    )
    catalog.add(
        "createUser",
        {"createUser": "username", "pwd": "password", "roles": BASIC_USER_ROLES},
        confirm=_confirm_user_created,
        requires_majority=True,
    )
    catalog.add(
        "updateUser",
        {"updateUser": "username", "pwd": "password2", "roles": BASIC_USER_ROLES},
        setup=_setup_existing_user,
        confirm=_confirm_user_updated,
        requires_majority=True,
    )
    catalog.add(
        "dropUser",
        {"dropUser": "tempUser"},
        setup=_setup_temp_user,
        confirm=_confirm_user_dropped,
        requires_majority=True,
    )

    # Sharded drop returns a normal error rather than a writeConcernError
    catalog.add(
        "drop-sharded",
        {"drop": collection_name},
        setup=_setup_sharded_collection,
        confirm=_confirm_collection_empty,
        requires_majority=False,
        runs_on_shards=True,
        fails_on_shards=True,
        partition=Partition.UPCONVERTED,
        description="Drop a sharded collection",
    )

    return catalog
