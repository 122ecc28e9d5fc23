import mimetypes
import os
import tempfile
from collections import namedtuple
from contextlib import contextmanager

from cached_property import cached_property

from freeimages.utils import gen_unique_id
from freeimages.utils import human_size
from freeimages.utils import ONE_MB


class UploadedFile(
    namedtuple(
        'UploadedFile',
        (
            'human_name',
            'num_bytes',
            'open_file',
            'content_type',
            'unique_id',
        ),
    ),
):
    """An image received from a client, held in a temporary file."""

    @classmethod
    @contextmanager
    def from_http_file(cls, f, upload_config):
        """Save an uploaded werkzeug file, enforcing the configured limits."""
        if f is None or not f.filename:
            raise MissingFileError('No file was uploaded.')

        with tempfile.NamedTemporaryFile() as tf:
            # We don't know the file size until we start to save the file (the
            # client can lie about the uploaded size, and some browsers don't
            # even send it).
            f.save(tf)
            num_bytes = tf.tell()
            if num_bytes == 0:
                raise MissingFileError(f'{f.filename} is empty.')

            max_bytes = int(upload_config['maxSize'] * ONE_MB)
            if num_bytes > max_bytes:
                raise FileTooLargeError(
                    '{} ({}) exceeded the maximum file size limit of {}'.format(
                        f.filename,
                        human_size(num_bytes),
                        human_size(max_bytes),
                    ),
                )
            tf.seek(0)

            uf = cls(
                human_name=f.filename,
                num_bytes=num_bytes,
                open_file=tf,
                content_type=f.mimetype,
                unique_id=gen_unique_id(),
            )
            allowed_types = upload_config.get('allowedTypes') or ()
            if allowed_types and uf.mimetype not in allowed_types:
                raise ContentTypeForbiddenError(
                    f'Sorry, files of type "{uf.mimetype}" are not allowed.',
                )
            yield uf

    @cached_property
    def name(self):
        """File name that will be stored."""
        if self.extension:
            return '{self.unique_id}.{self.extension}'.format(self=self)
        else:
            return self.unique_id

    @cached_property
    def extension(self):
        """Return file extension, or empty string."""
        _, ext = os.path.splitext(self.human_name)
        if ext.startswith('.'):
            ext = ext[1:]
        return ext

    @cached_property
    def mimetype(self):
        if self.content_type:
            return self.content_type
        mime, _ = mimetypes.guess_type(self.human_name)
        return mime or 'application/octet-stream'

    def key(self, upload_path):
        """Object key within the bucket."""
        return upload_path + self.name


class UploadError(Exception):
    """An upload which could not be completed.

    `status_code` is the HTTP status the API responds with.
    """
    status_code = 500


class MissingFileError(UploadError):
    status_code = 400


class IncompleteConfigError(UploadError):
    status_code = 400


class FileTooLargeError(UploadError):
    status_code = 413


class ContentTypeForbiddenError(UploadError):
    status_code = 415


class StorageError(UploadError):
    """The object store rejected a request."""


class InvalidSignedUrlError(UploadError):
    status_code = 400
