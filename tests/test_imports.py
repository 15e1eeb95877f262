from dtsnarrow.imports import (
    import_priority,
    optimize,
    parse_import,
    reduce_import,
)


def test_parse_default_and_named_bindings():
    record = parse_import("import React, { useState, type FC as F } from 'react';")
    assert record.source == "react"
    assert record.default_binding == "React"
    assert [b.name for b in record.named_bindings] == ["useState", "FC"]
    assert record.named_bindings[1].alias == "F"
    assert record.named_bindings[1].is_type_only
    assert record.is_mixed
    assert record.local_names() == ["React", "useState", "F"]


def test_parse_other_forms():
    ns = parse_import("import * as path from 'node:path'")
    assert ns.namespace_binding == "path"

    type_only = parse_import('import type { A, B } from "./types"')
    assert type_only.statement_is_type_only
    assert type_only.source == "./types"
    assert not type_only.is_mixed

    side_effect = parse_import("import './polyfill';")
    assert side_effect.is_side_effect
    assert side_effect.source == "./polyfill"

    multiline = parse_import("import {\n  a, // first\n  b,\n} from './m'")
    assert [b.name for b in multiline.named_bindings] == ["a", "b"]


def test_import_type_from_binds_default_named_type():
    record = parse_import("import type from './t'")
    assert record.default_binding == "type"
    assert not record.statement_is_type_only


def test_require_imports():
    record = parse_import("import fs = require('fs');")
    assert record.is_require
    assert record.default_binding == "fs"
    assert reduce_import(record, {"fs"}).text == "import fs = require('fs');"
    assert reduce_import(record, set()) is None


def test_unsupported_forms_are_skipped():
    assert parse_import("import('./lazy')") is None


def test_reduce_import_keeps_only_used_bindings():
    record = parse_import("import Def, { a, b as c, type T } from './x'")
    reduced = reduce_import(record, {"c", "T"})
    assert reduced.text == "import { b as c, type T } from './x';"
    assert reduce_import(record, {"b"}) is None

    default_only = reduce_import(record, {"Def"})
    assert default_only.text == "import Def from './x';"


def test_side_effect_imports_are_always_kept():
    record = parse_import("import 'reflect-metadata'")
    assert reduce_import(record, set()).text == "import 'reflect-metadata';"


def test_usage_is_whole_word():
    records = [parse_import("import { Foo, Bar } from './m'")]
    retained = optimize(records, "export declare type X = FooBar | 'Bar';")
    assert retained == []


def test_optimize_drops_dead_imports_and_sorts():
    records = [
        parse_import("import { z } from 'zod'"),
        parse_import("import { unused } from './unused'"),
        parse_import("import { a } from './local'"),
        parse_import("import { test } from 'bun:test'"),
    ]
    text = "export declare const x: typeof z | typeof a | typeof test;"
    retained = optimize(records, text, preferred_sources=("bun",))
    assert [imp.text for imp in retained] == [
        "import { test } from 'bun:test';",
        "import { a } from './local';",
        "import { z } from 'zod';",
    ]


def test_import_priority():
    assert import_priority("bun:test", ("bun", "node:")) == 0
    assert import_priority("node:fs", ("bun", "node:")) == 1
    assert import_priority("react", ("bun", "node:")) == 2
