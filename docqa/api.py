"""
API Blueprint - upload, chat and health endpoints

Route handlers own the session: they load the ConversationContext,
hand it to the services and write it back.
"""
import os
import time
import uuid
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required
from werkzeug.utils import secure_filename

from docqa.errors import DocqaError, QuestionAnswerError
from docqa.models import Document
from docqa.services.aws_service import aws_ready
from docqa.services.conversation_service import ConversationContext
from docqa.services.ocr_service import ocr_ready

api_bp = Blueprint('api', __name__)


# ============ Helper Functions ============

def services():
    return current_app.extensions['docqa']


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _upload_path(filename: str) -> str:
    safe = secure_filename(filename or "") or "upload.pdf"
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    # Each upload gets its own file, and so its own page-image names.
    return os.path.join(folder, f"{int(time.time() * 1000)}_{uuid.uuid4().hex}_{safe}")


def _render_chat(context: ConversationContext, error=None, status=200):
    return render_template('chat.html', error=error, conversation=context.to_dicts()), status


# ============ Routes ============

@api_bp.route('/', methods=['GET'])
@login_required
def index():
    return redirect(url_for('api.upload'))


@api_bp.route('/upload', methods=['GET', 'POST'])
@login_required
def upload():
    if request.method == 'GET':
        return render_template('upload.html', error=None)

    file = request.files.get('pdf')
    if not file or not file.filename:
        return render_template('upload.html', error='No file uploaded.'), 400

    path = _upload_path(file.filename)
    try:
        file.save(path)
    except OSError as e:
        current_app.logger.error('Could not store upload %s: %s', path, e)
        if os.path.exists(path):
            os.remove(path)
        return render_template('upload.html', error='Error processing PDF.'), 500

    document = Document.from_path(path)
    current_app.logger.info('Starting PDF processing of %s for %s', document.document_id, current_user.email)
    result = services().orchestrator.run(document, current_user.email)

    if not result.ok:
        current_app.logger.error('Error during PDF processing of %s: %r', document.document_id, result.error)
        return render_template('upload.html', error=result.user_message), 422

    context = ConversationContext.load(session)
    context.reset(result.key)
    context.save(session)
    return redirect(url_for('api.chat'))


@api_bp.route('/chat', methods=['GET', 'POST'])
@login_required
def chat():
    context = ConversationContext.load(session)
    if request.method == 'GET':
        return _render_chat(context)

    question = request.form.get('question', '')
    try:
        services().conversations.ask(context, question)
    except QuestionAnswerError as e:
        current_app.logger.error('Error during chat processing: %s', e)
        status = 400 if not context.document_key or not question.strip() else 502
        return _render_chat(context, error=e.user_message, status=status)
    except DocqaError as e:
        current_app.logger.error('Error during chat processing: %s', e)
        return _render_chat(context, error='Error processing your request.', status=502)

    context.save(session)
    return redirect(url_for('api.chat'))


@api_bp.route('/new-document', methods=['POST'])
@login_required
def new_document():
    context = ConversationContext.load(session)
    context.clear()
    context.save(session)
    return redirect(url_for('api.upload'))


@api_bp.route('/healthz', methods=['GET'])
def healthz():
    ocr_ok, ocr_msg = ocr_ready()
    aws_ok, aws_msg = aws_ready(current_app.config.get('AWS_S3_BUCKET', ''), current_app.config.get('AWS_REGION', ''))
    return jsonify({
        "ok": True,
        "app_version": current_app.config.get('APP_VERSION'),
        "time_utc": now_utc_iso(),
        "ocr_ready": ocr_ok,
        "ocr_message": ocr_msg,
        "s3_ready": aws_ok,
        "s3_message": aws_msg,
        "artifact_store": type(services().store).__name__,
    }), 200
