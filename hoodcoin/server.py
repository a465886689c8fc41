#!/usr/bin/env python3
"""
HoodCoin Server - REST API for the lifecycle manager

Endpoints:
  GET    /health                              - Liveness
  GET    /api/status                          - Constants, token counts, roles
  GET    /api/curve                           - Curve table
  GET    /api/price?supply=N                  - Unit price at supply
  GET    /api/claims?pending=1                - Claims (only unconsumed with pending=1)
  POST   /api/claims                          - Register a neighborhood claim (verifier)
  POST   /api/tokens                          - Create token from caller's claim
  GET    /api/tokens                          - All tokens
  GET    /api/tokens/ready                    - Tokens ready for migration
  GET    /api/tokens/by-location/<name>       - Token handle for a location
  GET    /api/tokens/<token>                  - Token info
  GET    /api/tokens/<token>/progress         - Migration progress
  GET    /api/tokens/<token>/quote/buy?value= - Buy preview
  GET    /api/tokens/<token>/quote/sell?amount= - Sell preview
  POST   /api/tokens/<token>/buy              - Buy
  POST   /api/tokens/<token>/sell             - Sell
  POST   /api/tokens/<token>/migrate          - Migrate (owner, or migrator with fee_bps)
  POST   /api/roles/verifiers                 - Add verifier (owner)
  DELETE /api/roles/verifiers/<addr>          - Remove verifier (owner)
  POST   /api/roles/migrator                  - Set migrator (owner)

Amounts are integers (wei / token base units). Mutating requests carry the
acting address as "caller". Errors answer {"error": kind, "message": ...}.
"""

import logging
import time
from typing import Any, Callable, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .errors import HoodError
from .manager import HoodCoinManager

log = logging.getLogger("hoodcoin.server")


class BadRequest(ValueError):
    """Missing or malformed request field."""


def _body() -> dict:
    data = request.get_json(silent=True)
    if not data:
        raise BadRequest("No data provided")
    return data


def _field(data: dict, key: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise BadRequest(f"Missing {key}")
    return value


def _int(raw: Any, key: str) -> int:
    """Integer from JSON or a query string; strings are accepted for big values."""
    if isinstance(raw, bool):
        raise BadRequest(f"{key} must be an integer")
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw), 0)
    except ValueError:
        raise BadRequest(f"{key} must be an integer, got {raw!r}")


def _int_field(data: dict, key: str, default: Optional[int] = None) -> int:
    if data.get(key) is None and default is not None:
        return default
    return _int(_field(data, key), key)


def _int_arg(key: str) -> int:
    raw = request.args.get(key)
    if raw is None or raw == "":
        raise BadRequest(f"Missing {key}")
    return _int(raw, key)


def create_app(manager: HoodCoinManager, on_change: Optional[Callable[[], None]] = None) -> Flask:
    """
    Build the Flask app around a manager instance.

    on_change is called after every successful mutating request.
    """
    app = Flask(__name__)
    CORS(app)  # Allow cross-origin for the map frontend
    app.config["HOOD_MANAGER"] = manager

    # =========================================================================
    # ERROR HANDLING
    # =========================================================================

    @app.errorhandler(HoodError)
    def handle_hood_error(e: HoodError):
        log.warning(f"{request.method} {request.path} rejected: {e.kind}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(BadRequest)
    def handle_bad_request(e: BadRequest):
        return jsonify({'error': 'BadRequest', 'message': str(e)}), 400

    @app.errorhandler(ValueError)
    def handle_value_error(e: ValueError):
        log.warning(f"{request.method} {request.path} invalid: {e}")
        return jsonify({'error': 'BadRequest', 'message': str(e)}), 400

    @app.errorhandler(TypeError)
    def handle_type_error(e: TypeError):
        return jsonify({'error': 'BadRequest', 'message': str(e)}), 400

    if on_change is not None:
        @app.after_request
        def persist(response):
            if request.method in ('POST', 'DELETE') and response.status_code < 400:
                on_change()
            return response

    # =========================================================================
    # HEALTH / STATUS
    # =========================================================================

    @app.route('/health')
    def health():
        return jsonify({'ok': True, 'timestamp': int(time.time())})

    @app.route('/api/status')
    def api_status():
        status = manager.status()
        status['timestamp'] = int(time.time())
        return jsonify(status)

    @app.route('/api/curve')
    def api_curve():
        return jsonify(manager.curve.to_dict())

    @app.route('/api/price')
    def api_price():
        supply = _int_arg('supply')
        return jsonify({'supply': supply, 'unit_price': manager.price_at(supply)})

    # =========================================================================
    # CLAIMS / CREATION
    # =========================================================================

    @app.route('/api/claims')
    def api_claims():
        pending = request.args.get('pending', '') in ('1', 'true')
        claims = [c.to_dict() for c in manager.claims(include_consumed=not pending)]
        return jsonify({'count': len(claims), 'claims': claims})

    @app.route('/api/claims', methods=['POST'])
    def api_register_claim():
        """
        Register a claim.

        Request:
        {
            "caller": "0x...",          # verifier
            "creator": "0x...",
            "location_name": "Kerry",
            "symbol": "KERY"
        }
        """
        data = _body()
        claim = manager.register_claim(
            verifier=_field(data, 'caller'),
            creator=_field(data, 'creator'),
            location_name=_field(data, 'location_name'),
            symbol=_field(data, 'symbol'),
        )
        return jsonify({'success': True, 'claim': claim.to_dict()}), 201

    @app.route('/api/tokens', methods=['POST'])
    def api_create_token():
        """
        Create a token.

        Request:
        {
            "caller": "0x...",
            "initial_eth_in": 1000000000000000,
            "value": 2000000000000000,   # creation_fee + initial_eth_in
            "location_name": "Kerry"     # optional
        }
        """
        data = _body()
        token = manager.create_token(
            caller=_field(data, 'caller'),
            initial_eth_in=_int_field(data, 'initial_eth_in', 0),
            value=_int_field(data, 'value'),
            location_name=data.get('location_name'),
        )
        return jsonify({'success': True, 'token': token,
                        'record': manager.get_record(token).to_dict()}), 201

    # =========================================================================
    # TOKEN VIEWS
    # =========================================================================

    @app.route('/api/tokens')
    def api_tokens():
        tokens = [rec.to_dict() for rec in manager.tokens()]
        return jsonify({'count': len(tokens), 'tokens': tokens})

    @app.route('/api/tokens/ready')
    def api_ready():
        ready = manager.list_ready_for_migration()
        return jsonify({'count': len(ready), 'tokens': ready})

    @app.route('/api/tokens/by-location/<path:name>')
    def api_token_by_location(name):
        return jsonify({'location_name': name, 'token': manager.get_token(name)})

    @app.route('/api/tokens/<token>')
    def api_token_info(token):
        record = manager.get_record(token)
        info = manager.token_info(token).to_dict()
        info.update({
            'token': record.token,
            'location_name': record.location_name,
            'symbol': record.symbol,
            'state': record.state.value,
        })
        position = manager.position_for(token)
        if position is not None:
            info['position'] = position.to_dict()
        return jsonify(info)

    @app.route('/api/tokens/<token>/progress')
    def api_progress(token):
        return jsonify(manager.migration_progress(token).to_dict())

    @app.route('/api/tokens/<token>/quote/buy')
    def api_quote_buy(token):
        return jsonify(manager.preview_buy(token, _int_arg('value')).to_dict())

    @app.route('/api/tokens/<token>/quote/sell')
    def api_quote_sell(token):
        return jsonify(manager.preview_sell(token, _int_arg('amount')).to_dict())

    @app.route('/api/tokens/<token>/balance/<address>')
    def api_balance(token, address):
        return jsonify({'token': token, 'address': address,
                        'balance': manager.balance_of(token, address)})

    # =========================================================================
    # TRADING / MIGRATION
    # =========================================================================

    @app.route('/api/tokens/<token>/buy', methods=['POST'])
    def api_buy(token):
        """Request: {"caller": "0x...", "value": wei, "min_tokens_out": 0}"""
        data = _body()
        minted = manager.buy(
            caller=_field(data, 'caller'),
            token=token,
            min_tokens_out=_int_field(data, 'min_tokens_out', 0),
            value=_int_field(data, 'value'),
        )
        return jsonify({'success': True, 'tokens_out': minted,
                        'info': manager.token_info(token).to_dict()})

    @app.route('/api/tokens/<token>/sell', methods=['POST'])
    def api_sell(token):
        """Request: {"caller": "0x...", "amount": units, "min_eth_out": 0}"""
        data = _body()
        paid = manager.sell(
            caller=_field(data, 'caller'),
            token=token,
            token_amount=_int_field(data, 'amount'),
            min_eth_out=_int_field(data, 'min_eth_out', 0),
        )
        return jsonify({'success': True, 'eth_out': paid,
                        'info': manager.token_info(token).to_dict()})

    @app.route('/api/tokens/<token>/migrate', methods=['POST'])
    def api_migrate(token):
        """Request: {"caller": "0x..."} or {"caller": "0x...", "fee_bps": 250}"""
        data = _body()
        caller = _field(data, 'caller')
        if data.get('fee_bps') is None:
            position = manager.trigger_migration(caller, token)
        else:
            position = manager.migrate_with_fee(caller, token, _int(data['fee_bps'], 'fee_bps'))
        return jsonify({'success': True, 'position': position.to_dict()})

    # =========================================================================
    # ROLES
    # =========================================================================

    @app.route('/api/roles')
    def api_roles():
        return jsonify(manager.roles.to_dict())

    @app.route('/api/roles/verifiers', methods=['POST'])
    def api_add_verifier():
        data = _body()
        manager.add_verifier(_field(data, 'caller'), _field(data, 'verifier'))
        return jsonify({'success': True, 'roles': manager.roles.to_dict()})

    @app.route('/api/roles/verifiers/<address>', methods=['DELETE'])
    def api_remove_verifier(address):
        data = _body()
        manager.remove_verifier(_field(data, 'caller'), address)
        return jsonify({'success': True, 'roles': manager.roles.to_dict()})

    @app.route('/api/roles/migrator', methods=['POST'])
    def api_set_migrator():
        data = _body()
        manager.set_migrator(_field(data, 'caller'), _field(data, 'migrator'))
        return jsonify({'success': True, 'roles': manager.roles.to_dict()})

    return app


def run_server(manager: HoodCoinManager, host: str, port: int,
               on_change: Optional[Callable[[], None]] = None):
    app = create_app(manager, on_change)
    log.info(f"Starting HoodCoin server on {host}:{port}")
    log.info(f"Owner: {manager.roles.owner}")
    log.info(f"Migration threshold: {manager.config.migration_threshold} wei")
    app.run(host=host, port=port, debug=False)
