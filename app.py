"""
Advising Schedule Builder - HTTP API
"""

import logging

import requests
from flask import Flask, request, jsonify, current_app

from config import get_config, validate_config
from data_adapter import DataServiceFactory
from scheduler_core import SchedulerDataError
from scheduler_strategies import STRATEGIES, get_strategy
from models import db

# --- VERSION ---
VERSION = "1.0.0"

# --- LOGGING SETUP ---
logging.basicConfig(
    level=get_config().LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(config_class=None):
    config_class = config_class or get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)
    app.secret_key = config_class.SECRET_KEY

    db.init_app(app)
    with app.app_context():
        db.create_all()

    issues = validate_config(config_class)
    for issue in issues:
        logger.warning(f"Configuration issue: {issue}")
    app.config['CONFIG_ISSUES'] = issues

    DataServiceFactory.configure(config_class)

    _register_routes(app)
    return app


def _build_schedule(student_id: str, term: str, strategy_name: str):
    builder = get_strategy(
        strategy_name,
        DataServiceFactory.get_requirement_source(),
        DataServiceFactory.get_section_catalog(),
        DataServiceFactory.get_schedule_store(),
        min_credits=current_app.config['MIN_CREDITS'],
        max_credits=current_app.config['MAX_CREDITS'],
    )
    return builder.build(student_id, term)


def _register_routes(app):

    @app.route('/api/schedule-builder', methods=['POST'])
    def schedule_builder():
        data = request.get_json(silent=True) or {}

        # "Current student" / default term are resolved here, never inside the builder
        student_id = data.get('studentId') or current_app.config.get('DEFAULT_STUDENT_ID')
        term = data.get('term') or current_app.config.get('DEFAULT_TERM')
        strategy_name = data.get('strategy') or current_app.config.get('DEFAULT_STRATEGY', 'optimized')

        if not student_id:
            return jsonify({'error': 'Student ID is required'}), 400
        if not term:
            return jsonify({'error': 'Term is required'}), 400
        if strategy_name not in STRATEGIES:
            return jsonify({'error': f"Unknown strategy '{strategy_name}'",
                            'strategies': list(STRATEGIES)}), 400

        try:
            schedule = _build_schedule(str(student_id), term, strategy_name)
        except SchedulerDataError as e:
            logger.error(f"Schedule data error for student {student_id}: {e}")
            return jsonify({'error': 'Failed to build schedule', 'details': str(e)}), 500
        except requests.RequestException as e:
            logger.error(f"Upstream request failed for student {student_id}: {e}")
            return jsonify({'error': 'Failed to build schedule'}), 500
        except Exception:
            logger.exception(f"Error in schedule builder API for student {student_id}")
            return jsonify({'error': 'Failed to build schedule'}), 500

        return jsonify({
            'schedule': schedule.to_dict(),
            'message': 'Schedule built successfully with optimized course selection and conflict resolution'
            if strategy_name == 'optimized' else 'Schedule built successfully'
        })

    @app.route('/api/schedules/<schedule_id>', methods=['GET'])
    def get_schedule(schedule_id):
        try:
            schedule = DataServiceFactory.get_schedule_store().get(schedule_id)
        except SchedulerDataError as e:
            logger.error(f"Schedule store unavailable: {e}")
            return jsonify({'error': 'Failed to load schedule', 'details': str(e)}), 500
        if schedule is None:
            return jsonify({'error': 'Schedule not found'}), 404
        return jsonify({'schedule': schedule})

    @app.route('/api/health', methods=['GET'])
    def health_check():
        issues = current_app.config.get('CONFIG_ISSUES', [])
        return jsonify({
            'status': 'healthy' if not issues else 'degraded',
            'version': VERSION,
            'backend': current_app.config.get('DATA_BACKEND'),
            'strategies': list(STRATEGIES),
            'issues': issues,
        })


if __name__ == '__main__':
    create_app().run(debug=get_config().DEBUG, port=5000)
