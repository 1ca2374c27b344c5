"""Tests for ExampleClientAdapter (template/reference adapter)."""

from vista.analysis.example_client_adapter import ExampleClientAdapter


class TestExampleClientAdapter:
    def test_implements_base_contract(self) -> None:
        adapter = ExampleClientAdapter()
        result = adapter.create_image_completion(
            model="any",
            temperature=0.0,
            system_prompt="sys",
            image_data_url="data:image/png;base64,AAAA",
        )
        assert isinstance(result, str)
        assert result.strip()

    def test_is_always_configured(self) -> None:
        assert ExampleClientAdapter().is_configured is True

    def test_ignores_input_parameters(self) -> None:
        adapter = ExampleClientAdapter()
        r1 = adapter.create_image_completion(
            model="a",
            temperature=0.0,
            system_prompt="s1",
            image_data_url="data:image/png;base64,AAAA",
        )
        r2 = adapter.create_image_completion(
            model="b",
            temperature=0.3,
            system_prompt="s2",
            image_data_url="data:image/png;base64,BBBB",
        )
        assert r1 == r2
