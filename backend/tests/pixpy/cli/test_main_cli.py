"""
Tests for the pixpy command-line interface
"""
import base64
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pixpy.cli.main_cli import create_parser, main, write_data_url
from pixpy.llm.errors import NETWORK_MESSAGE, ClassifiedError, ErrorCategory

RESULT_URL = 'data:image/png;base64,' + base64.b64encode(b'edited-png').decode('ascii')


@pytest.fixture
def mock_service():
    """Patch EditingService construction inside the CLI"""
    with patch('pixpy.cli.main_cli.EditingService') as service_cls:
        service = MagicMock()
        for name in ('apply_filter', 'apply_adjustment', 'apply_texture', 'apply_style', 'retouch',
                     'remove_background', 'fuse', 'generate_decade_image', 'generate_from_text',
                     'creative_suggestions'):
            setattr(service, name, AsyncMock(return_value=RESULT_URL))
        service_cls.return_value = service
        service.cls = service_cls
        yield service


class TestParser:
    def test_filter_command(self):
        args = create_parser().parse_args(['filter', 'in.png', 'vintage sepia'])
        assert args.command == 'filter'
        assert args.image == 'in.png'
        assert args.prompt == 'vintage sepia'

    def test_retouch_requires_coordinates(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['retouch', 'in.png', 'fix it'])

    def test_fuse_collects_sources_in_order(self):
        args = create_parser().parse_args(['fuse', 'main.png', 'blend', 'a.png', 'b.png'])
        assert args.sources == ['a.png', 'b.png']

    def test_aspect_ratio_choices(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['generate', 'a cat', '--aspect-ratio', '2:1'])

    def test_global_options(self):
        args = create_parser().parse_args(['--api-key', 'k', '--base-url', 'https://p', 'remove-bg', 'in.png'])
        assert (args.api_key, args.base_url) == ('k', 'https://p')


class TestMain:
    def test_filter_writes_output_next_to_input(self, mock_service, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert main(['filter', 'photo.jpg', 'noir']) == 0

        mock_service.apply_filter.assert_awaited_once_with('photo.jpg', 'noir')
        assert (tmp_path / 'photo_edited.png').read_bytes() == b'edited-png'

    def test_explicit_output_and_overrides(self, mock_service, tmp_path):
        out = tmp_path / 'result.png'

        assert main(['--api-key', 'user-key', '-o', str(out), 'retouch', 'in.png', 'fix', '--x', '3', '--y', '7']) == 0

        mock_service.retouch.assert_awaited_once_with('in.png', 'fix', (3, 7))
        overrides = mock_service.cls.call_args.kwargs['overrides']
        assert overrides.get_api_key() == 'user-key'
        assert out.read_bytes() == b'edited-png'

    def test_suggestions_are_printed_as_json(self, mock_service, capsys):
        mock_service.creative_suggestions.return_value = [{'name': 'n', 'prompt': 'p'}]

        assert main(['suggest', 'in.png', 'texture']) == 0

        assert json.loads(capsys.readouterr().out) == [{'name': 'n', 'prompt': 'p'}]

    def test_classified_error_exit_code(self, mock_service, capsys):
        mock_service.apply_filter.side_effect = ClassifiedError(ErrorCategory.NETWORK_FAILURE, NETWORK_MESSAGE, 'filter')

        assert main(['filter', 'in.png', 'noir']) == 1

        err = capsys.readouterr().err
        assert "Error occurred during 'filter'" in err

    def test_generate_uses_default_name(self, mock_service, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert main(['generate', 'a lighthouse', '--aspect-ratio', '16:9']) == 0

        mock_service.generate_from_text.assert_awaited_once_with('a lighthouse', '16:9')
        assert (tmp_path / 'generated_edited.png').exists()


class TestWriteDataUrl:
    def test_rejects_non_image_result(self, tmp_path):
        with pytest.raises(ValueError):
            write_data_url('hello', str(tmp_path / 'x.png'), None)

    def test_extension_follows_mime(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = write_data_url('data:image/jpeg;base64,' + base64.b64encode(b'j').decode('ascii'), None, 'dir/pic.png')
        assert path.name == 'pic_edited.jpg'
