from flask import Blueprint, jsonify

from pesantren.decorators import api_auth_required, get_current_user
from pesantren.services.stats import admin_stats, ustad_stats

bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


@bp.route('/stats', methods=['GET'])
@api_auth_required
def stats():
    user = get_current_user()
    if user.is_admin():
        return jsonify({'role': 'admin', 'stats': admin_stats()})
    if user.is_ustad():
        return jsonify({'role': 'ustad', 'stats': ustad_stats(user.uid)})
    return jsonify({'error': 'Dashboard stats not available for this role'}), 403
