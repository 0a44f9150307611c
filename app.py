# Mr Tagger - ID3v2 tag editing engine
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

from flask import Flask, jsonify, request

from config import HOST, PORT, logger
from tagger.album_art.codec import parse_data_url, sniff_mime_type, to_data_url
from tagger.commands import TaggerCommands
from tagger.errors import TaggerError

# HTTP status for each engine error kind; anything else is a bad request
ERROR_STATUS = {
    'SessionNotFound': 404,
    'TagIOError': 500
}


def create_app(commands=None):
    app = Flask(__name__)
    app.config['COMMANDS'] = commands if commands is not None else TaggerCommands()

    @app.after_request
    def add_cache_headers(response):
        """Add cache-control headers so proxies never cache session state"""
        if response.mimetype == 'application/json':
            response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
            response.headers['Pragma'] = 'no-cache'
            response.headers['Expires'] = '0'
        return response

    def cmd():
        return app.config['COMMANDS']

    def respond(result):
        if result.get('status') == 'error':
            return jsonify(result), ERROR_STATUS.get(result.get('kind'), 400)
        return jsonify(result)

    # =============
    # FILE SESSIONS
    # =============

    @app.route('/files')
    def list_files():
        """List open files"""
        return jsonify(cmd().list_files())

    @app.route('/files', methods=['POST'])
    def open_files():
        """Open one or more files; failures are reported per file"""
        data = request.get_json(silent=True) or {}
        paths = data.get('paths')
        if not isinstance(paths, list) or not paths:
            return jsonify({'status': 'error', 'error': 'No paths provided'}), 400
        if not all(isinstance(path, str) and path for path in paths):
            return jsonify({'status': 'error', 'error': 'Paths must be non-empty text'}), 400

        results = cmd().open_files(paths)
        opened = sum(1 for item in results if item['handle'])
        logger.info(f"[open_files] Opened {opened} of {len(results)} files")
        return jsonify({'files': results})

    @app.route('/files/<handle>')
    def get_page(handle):
        return respond(cmd().get_page(handle))

    @app.route('/files/<handle>', methods=['DELETE'])
    def close_file(handle):
        return respond(cmd().close_file(handle))

    @app.route('/files/<handle>/save', methods=['POST'])
    def save_file(handle):
        """Save a file, or save it under a new path when asPath is given"""
        data = request.get_json(silent=True) or {}
        return respond(cmd().save_file(handle, data.get('asPath')))

    @app.route('/files/<handle>/fields/<field_name>', methods=['PUT'])
    def set_field(handle, field_name):
        data = request.get_json(silent=True) or {}
        value = data.get('value', '')
        if not isinstance(value, str):
            return jsonify({'status': 'error', 'error': 'Field value must be text'}), 400
        return respond(cmd().set_field(handle, field_name, value))

    @app.route('/files/<handle>/fields/<field_name>', methods=['DELETE'])
    def remove_field(handle, field_name):
        return respond(cmd().remove_field(handle, field_name))

    # =========
    # ALBUM ART
    # =========

    @app.route('/files/<handle>/image')
    def get_image(handle):
        """Get the cover image as a data URL; 'image' is null when absent"""
        result = cmd().get_image(handle)
        image = result.get('image')
        if image:
            image = dict(image)
            image['art'] = to_data_url(image['mime_type'], image.pop('data'))
            result = dict(result, image=image)
        return respond(result)

    @app.route('/files/<handle>/image', methods=['PUT'])
    def set_image(handle):
        """Set the cover image from a base64 data URL"""
        data = request.get_json(silent=True) or {}
        art_data = data.get('art')
        if not art_data:
            return jsonify({'status': 'error', 'error': 'No album art provided'}), 400

        try:
            mime_type, raw_bytes = parse_data_url(art_data)
        except TaggerError as e:
            return jsonify({'status': 'error', 'error': e.user_message}), 400

        mime_type = data.get('mimeType') or mime_type or sniff_mime_type(raw_bytes)
        return respond(cmd().set_image(handle, mime_type, raw_bytes))

    @app.route('/files/<handle>/image', methods=['DELETE'])
    def remove_image(handle):
        return respond(cmd().remove_image(handle))

    # ============
    # APP LIFETIME
    # ============

    @app.route('/status')
    def status():
        """Whether any open file has unsaved changes (checked before exit)"""
        return jsonify({'dirty': cmd().is_dirty(), 'files': len(cmd().list_files()['files'])})

    @app.route('/close-all', methods=['POST'])
    def close_all():
        """Close every file; the UI calls this once the user confirmed discarding changes"""
        return respond(cmd().close_all())

    return app


app = create_app()

if __name__ == '__main__':
    app.run(host=HOST, port=PORT, debug=False)
