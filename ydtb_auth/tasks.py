"""
Celery 异步任务
"""

import logging

from celery import shared_task
from django.core.mail import EmailMultiAlternatives


logger = logging.getLogger(__name__)


@shared_task(name='ydtb_auth.deliver_email')
def deliver_email(to, subject, text_body, html_body=None, from_email=None):
    """
    投递一封邮件

    Args:
        to: 收件人邮箱
        subject: 主题
        text_body: 纯文本正文
        html_body: HTML 正文 (可选)
        from_email: 发件人，默认使用 DEFAULT_FROM_EMAIL

    Returns:
        int: 成功发送的邮件数量
    """
    message = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=from_email,
        to=[to],
    )
    if html_body:
        message.attach_alternative(html_body, 'text/html')

    sent = message.send(fail_silently=False)
    logger.info(f"Email '{subject}' delivered to {to}")
    return sent
