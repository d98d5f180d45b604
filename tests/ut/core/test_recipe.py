"""配方图模型与定义期校验测试"""

from __future__ import annotations

import pytest

from appletbuild.core.exceptions import DefinitionError, ValidationError
from appletbuild.core.recipe import (
    Command,
    DependencyCall,
    Invocation,
    Invoke,
    Lit,
    Param,
    Recipe,
    RecipeGraph,
    Ref,
    render,
)

REST = (Param("args", variadic=True),)


def _graph(*recipes: Recipe) -> RecipeGraph:
    return RecipeGraph(recipes, default=recipes[0].name)


class TestBinding:
    def test_variadic_captures_rest(self) -> None:
        r = Recipe("build", params=(Param("profile"), *REST))
        assert r.bind(["dev", "-v", "--locked"]) == {
            "profile": "dev", "args": ("-v", "--locked"),
        }

    def test_variadic_may_be_empty(self) -> None:
        assert Recipe("b", params=REST).bind([]) == {"args": ()}

    def test_default_fills_missing(self) -> None:
        r = Recipe("b", params=(Param("id", default="x"),))
        assert r.bind([]) == {"id": "x"}

    def test_too_few_arguments(self) -> None:
        with pytest.raises(ValidationError, match="需要 1 个参数，实际 0 个"):
            Recipe("icon", params=(Param("id"),)).bind([])

    def test_too_many_arguments(self) -> None:
        with pytest.raises(ValidationError, match="实际 2 个"):
            Recipe("icon", params=(Param("id"),)).bind(["a", "b"])

    def test_arity(self) -> None:
        assert Recipe("a", params=REST).arity() == (0, None)
        assert Recipe("a", params=(Param("x"), Param("y", default="1"))).arity() == (1, 2)

    def test_signature(self) -> None:
        assert Recipe("build-debug", params=REST).signature() == "build-debug *args"


class TestRender:
    def test_splices_variadic(self) -> None:
        args = (Lit("--release"), Ref("args"))
        assert render(args, {"args": ("-v", "a b")}) == ("--release", "-v", "a b")

    def test_scalar_reference(self) -> None:
        assert render((Ref("id"),), {"id": "com.x"}) == ("com.x",)

    def test_invocation_str_is_quoted(self) -> None:
        assert str(Invocation("run", ("a b",))) == "run 'a b'"


class TestRecipeGraph:
    def test_lookup(self) -> None:
        g = _graph(Recipe("a"), Recipe("_hidden"))
        assert "a" in g
        assert g.public_names() == ["a"]
        assert len(g) == 2

    def test_unknown_recipe(self) -> None:
        g = _graph(Recipe("a"))
        with pytest.raises(DefinitionError, match="配方不存在: nope"):
            g.get("nope")

    def test_missing_dependency(self) -> None:
        with pytest.raises(DefinitionError, match="依赖不存在的配方: ghost"):
            _graph(Recipe("a", dependencies=(DependencyCall("ghost"),)))

    def test_duplicate_name(self) -> None:
        with pytest.raises(DefinitionError, match="重复定义"):
            _graph(Recipe("a"), Recipe("a"))

    def test_missing_default(self) -> None:
        with pytest.raises(DefinitionError, match="默认配方不存在"):
            RecipeGraph([Recipe("a")], default="default")

    def test_cycle_detected_at_definition(self) -> None:
        with pytest.raises(DefinitionError, match="循环依赖: a, b"):
            _graph(
                Recipe("a", dependencies=(DependencyCall("b"),)),
                Recipe("b", dependencies=(DependencyCall("a"),)),
            )

    def test_self_cycle(self) -> None:
        with pytest.raises(DefinitionError, match="循环依赖"):
            _graph(Recipe("a", dependencies=(DependencyCall("a"),)))

    def test_cycle_through_nested_invoke(self) -> None:
        with pytest.raises(DefinitionError, match="循环依赖"):
            _graph(
                Recipe("dev", body=(Invoke("run"),)),
                Recipe("run", dependencies=(DependencyCall("dev"),)),
            )

    def test_dependency_arity_mismatch(self) -> None:
        with pytest.raises(DefinitionError, match="参数个数不匹配"):
            _graph(
                Recipe("install", dependencies=(DependencyCall("icon"),)),
                Recipe("icon", params=(Param("id"),)),
            )

    def test_spliced_variadic_satisfies_arity(self) -> None:
        g = _graph(
            Recipe("release", params=REST,
                   dependencies=(DependencyCall("debug", (Lit("--release"), Ref("args"))),)),
            Recipe("debug", params=REST),
        )
        assert "debug" in g

    def test_undeclared_reference(self) -> None:
        with pytest.raises(DefinitionError, match="未声明的形参: args"):
            _graph(Recipe("a", body=(Command((Lit("cargo"), Ref("args"))),)))

    def test_variadic_must_be_last(self) -> None:
        with pytest.raises(DefinitionError, match="必须位于最后"):
            _graph(Recipe("a", params=(Param("args", variadic=True), Param("x"))))

    def test_topological_order_puts_dependencies_first(self) -> None:
        g = _graph(
            Recipe("default", dependencies=(DependencyCall("release"),)),
            Recipe("release", params=REST,
                   dependencies=(DependencyCall("debug", (Ref("args"),)),)),
            Recipe("debug", params=REST),
        )
        order = g.topological_order()
        assert order.index("debug") < order.index("release") < order.index("default")
